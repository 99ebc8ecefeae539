"""
eTuition Backend - Payment Route Handlers
=========================================

Routes:
    POST  /payment-checkout-session        start a hosted checkout → {url}
    PATCH /payment-success?session_id=     reconcile a completed checkout
    GET   /payments/{email}                student, self-only
    GET   /revenue/{tutorEmail}            tutor, self-only
    GET   /admin/reports                   admin

The payment provider is injected with Depends(get_payment_gateway) so tests
can swap in an in-memory gateway through app.dependency_overrides.
"""

import logging
from typing import List, Union

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from etuition.auth import Principal, RoleGate, require_admin
from etuition.database import get_db_session
from etuition.models.enums import Role
from etuition.schemas.common import ErrorResponse
from etuition.schemas.payment import (
    AdminReport,
    CheckoutRequest,
    CheckoutResponse,
    PaymentNotCompleted,
    PaymentResponse,
)
from etuition.services.payment_base import PaymentGateway
from etuition.services.payment_service import payment_service
from etuition.services.stripe_gateway import get_payment_gateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Payments"])

PROVIDER_ERRORS = {
    502: {"description": "Payment provider error", "model": ErrorResponse},
    503: {"description": "Payment provider circuit open", "model": ErrorResponse},
}


@router.post(
    "/payment-checkout-session",
    response_model=CheckoutResponse,
    responses={
        404: {"description": "Application not found", "model": ErrorResponse},
        409: {"description": "Application already paid", "model": ErrorResponse},
        **PROVIDER_ERRORS,
    },
    summary="Create a checkout session for an application",
)
async def create_checkout_session(
    payload: CheckoutRequest,
    db: AsyncSession = Depends(get_db_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> CheckoutResponse:
    return await payment_service.create_checkout(db, gateway, payload)


@router.patch(
    "/payment-success",
    response_model=Union[PaymentResponse, PaymentNotCompleted],
    responses=PROVIDER_ERRORS,
    summary="Reconcile a completed checkout",
    description=(
        "Called by the success page with the provider's session id. Returns the "
        "payment record (the same record on every replay) or {success: false} "
        "when the session is not paid."
    ),
)
async def payment_success(
    session_id: str = Query(min_length=1),
    db: AsyncSession = Depends(get_db_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> Union[PaymentResponse, PaymentNotCompleted]:
    return await payment_service.reconcile(db, gateway, session_id)


@router.get("/payments/{email}", response_model=List[PaymentResponse], summary="Student payment history")
async def student_payments(
    email: str,
    principal: Principal = Depends(RoleGate(Role.STUDENT, owner_param="email", resource="payments")),
    db: AsyncSession = Depends(get_db_session),
) -> List[PaymentResponse]:
    return await payment_service.student_history(db, email)


@router.get("/revenue/{tutorEmail}", response_model=List[PaymentResponse], summary="Tutor revenue history")
async def tutor_revenue(
    tutor_email: str = Path(alias="tutorEmail"),
    principal: Principal = Depends(RoleGate(Role.TUTOR, owner_param="tutorEmail", resource="revenue history")),
    db: AsyncSession = Depends(get_db_session),
) -> List[PaymentResponse]:
    return await payment_service.tutor_revenue(db, tutor_email)


@router.get("/admin/reports", response_model=AdminReport, summary="Earnings and transactions (admin)")
async def admin_reports(
    principal: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> AdminReport:
    return await payment_service.admin_report(db)
