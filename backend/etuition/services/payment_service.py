"""
eTuition Backend - Payment Service
==================================

What:  Bridges tutor applications and the hosted checkout provider:
       starting a checkout, reconciling a completed one, and the payment
       histories and reports.
How:   Talks to the provider only through the PaymentGateway interface, so
       tests inject a fake and the route layer never sees stripe types.
Who:   Called by routes/payments.py.

Checkout → Reconcile flow:
    ┌──────────────┐   create    ┌──────────┐  redirect  ┌───────────────┐
    │ POST checkout│────────────▶│  Stripe  │───────────▶│ success page  │
    └──────────────┘  (no rows)  └──────────┘            └───────┬───────┘
                                                                 │ session_id
    ┌──────────────────────────────────────────────────────────┐ │
    │ PATCH /payment-success                                   │◀┘
    │   retrieve session → not paid?        → {success:false}  │
    │                    → already stored?  → stored payment   │
    │                    → insert payment + approve application│
    │                      (one transaction)                   │
    └──────────────────────────────────────────────────────────┘

Exactly-once:
    payments.session_id is unique. Replays find the stored row; two racing
    reconciliations of the same session cannot both insert, and the loser
    answers with the winner's row.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from etuition.config import settings
from etuition.exceptions import ConflictError, NotFoundError, ValidationError
from etuition.models.application import Application
from etuition.models.enums import ApplicationStatus
from etuition.models.payment import Payment
from etuition.models.tuition import Tuition
from etuition.schemas.payment import (
    AdminReport,
    CheckoutRequest,
    CheckoutResponse,
    PaymentNotCompleted,
    PaymentResponse,
)
from etuition.services.payment_base import CheckoutLineItem, CheckoutSession, PaymentGateway

logger = logging.getLogger(__name__)

PAID = "paid"


def _metadata_uuid(session: CheckoutSession, key: str) -> UUID:
    raw = session.metadata.get(key)
    try:
        return UUID(str(raw))
    except ValueError:
        raise ValidationError(
            f"Checkout session metadata has no valid {key}",
            field=key,
            context={"session_id": session.id},
        )


class PaymentService:
    """
    Business logic for payments.

    Public:   create_checkout(), reconcile()
    Student:  student_history()
    Tutor:    tutor_revenue()
    Admin:    admin_report()
    """

    async def create_checkout(
        self,
        db: AsyncSession,
        gateway: PaymentGateway,
        payload: CheckoutRequest,
    ) -> CheckoutResponse:
        """
        Start a hosted checkout for an application. Nothing is stored locally;
        the session lives with the provider until reconciliation.

        The charge is expectedSalary * 100 minor units.

        Raises:
            NotFoundError: the application does not exist.
            ValidationError: the application belongs to another post or another
                tutor, or the amount differs from the tutor's expected salary.
            ConflictError: the application is already Approved (paid).
            PaymentProviderError / CircuitBreakerOpenError: from the gateway.
        """
        application = await db.get(Application, payload.application_id)
        if application is None:
            raise NotFoundError(resource="application", resource_id=str(payload.application_id))
        if application.tuition_id != payload.tuition_id:
            raise ValidationError(
                "Application does not belong to this tuition",
                field="tuitionId",
            )
        if application.expected_salary != payload.expected_salary:
            raise ValidationError(
                "Amount does not match the tutor's expected salary",
                field="expectedSalary",
            )
        if application.tutor_email != payload.tutor_email:
            raise ValidationError(
                "Application does not belong to this tutor",
                field="tutorEmail",
            )
        if application.status == ApplicationStatus.APPROVED:
            raise ConflictError(
                "This application has already been paid for",
                context={"application_id": str(application.id)},
            )

        line_item = CheckoutLineItem(
            name=f"Tuition: {payload.subject} | Class : {payload.tuition_class}",
            description=f"Tutor: {payload.tutor_name or ''} | Email: {payload.tutor_email}",
            unit_amount=payload.expected_salary * 100,
        )
        session = await gateway.create_checkout_session(
            line_item=line_item,
            currency=settings.stripe_currency,
            metadata={
                "applicationId": str(payload.application_id),
                "tuitionId": str(payload.tuition_id),
                "tutorEmail": application.tutor_email,
            },
            customer_email=payload.student_email,
            success_url=settings.checkout_success_url,
            cancel_url=settings.checkout_cancel_url,
        )
        if not session.url:
            raise ValidationError("Payment provider returned no checkout URL")

        logger.info(
            "Checkout session %s created for application %s (%d minor units)",
            session.id,
            payload.application_id,
            line_item.unit_amount,
        )
        return CheckoutResponse(url=session.url)

    async def reconcile(
        self,
        db: AsyncSession,
        gateway: PaymentGateway,
        session_id: str,
    ) -> Union[PaymentResponse, PaymentNotCompleted]:
        """
        Record a completed checkout and approve its application.

        Returns:
            PaymentNotCompleted when the provider does not report the session
            as paid (no writes). Otherwise the stored payment, whether it was
            inserted now or by an earlier call.

        Raises:
            NotFoundError: the application or post named in the session
                metadata no longer exists.
        """
        session = await gateway.retrieve_checkout_session(session_id)
        if not session.is_paid:
            logger.info("Checkout session %s not paid (%s)", session.id, session.payment_status)
            return PaymentNotCompleted()

        stored = await self._find_by_session(db, session.id)
        if stored is not None:
            logger.info("Checkout session %s already reconciled", session.id)
            return PaymentResponse.model_validate(stored)

        application_id = _metadata_uuid(session, "applicationId")
        tuition_id = _metadata_uuid(session, "tuitionId")

        application = await db.get(Application, application_id)
        if application is None:
            raise NotFoundError(resource="application", resource_id=str(application_id))
        tuition = await db.get(Tuition, tuition_id)
        if tuition is None:
            raise NotFoundError(resource="tuition", resource_id=str(tuition_id))

        payment = Payment(
            session_id=session.id,
            application_id=application_id,
            tuition_id=tuition_id,
            student_email=(session.customer_email or "").strip().lower() or None,
            tutor_email=application.tutor_email,
            tutor_name=application.tutor_name,
            subject=tuition.subject,
            tuition_class=tuition.tuition_class,
            amount=Decimal(session.amount_total or 0) / 100,
            currency=session.currency or settings.stripe_currency,
            transaction_id=session.payment_intent,
            payment_status=session.payment_status,
        )

        try:
            async with db.begin_nested():
                db.add(payment)
                await db.execute(
                    update(Application)
                    .where(Application.id == application_id)
                    .values(status=ApplicationStatus.APPROVED, transaction_id=session.payment_intent)
                    .execution_options(synchronize_session=False)
                )
        except IntegrityError:
            # Another request reconciled this session between our check and insert
            logger.info("Checkout session %s reconciled concurrently", session.id)
            stored = await self._find_by_session(db, session.id)
            if stored is None:
                raise
            return PaymentResponse.model_validate(stored)

        logger.info(
            "Payment %s recorded: %s %s for application %s (%s)",
            session.id,
            payment.amount,
            payment.currency,
            application_id,
            payment.transaction_id,
        )
        return PaymentResponse.model_validate(payment)

    async def student_history(self, db: AsyncSession, email: str) -> List[PaymentResponse]:
        result = await db.execute(
            select(Payment)
            .where(Payment.student_email == email.strip().lower(), Payment.payment_status == PAID)
            .order_by(Payment.paid_at.desc())
        )
        return [PaymentResponse.model_validate(p) for p in result.scalars().all()]

    async def tutor_revenue(self, db: AsyncSession, email: str) -> List[PaymentResponse]:
        result = await db.execute(
            select(Payment)
            .where(Payment.tutor_email == email.strip().lower())
            .order_by(Payment.paid_at.desc())
        )
        return [PaymentResponse.model_validate(p) for p in result.scalars().all()]

    async def admin_report(self, db: AsyncSession) -> AdminReport:
        total = await db.execute(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.payment_status == PAID)
        )
        result = await db.execute(
            select(Payment).where(Payment.payment_status == PAID).order_by(Payment.paid_at.desc())
        )
        return AdminReport(
            total_earnings=float(total.scalar() or 0),
            transactions=[PaymentResponse.model_validate(p) for p in result.scalars().all()],
        )

    async def _find_by_session(self, db: AsyncSession, session_id: str) -> Optional[Payment]:
        result = await db.execute(select(Payment).where(Payment.session_id == session_id))
        return result.scalar_one_or_none()


# ── Singleton Instance ────────────────────────────────────────────────────
payment_service = PaymentService()
