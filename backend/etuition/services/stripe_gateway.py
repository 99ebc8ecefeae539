"""
eTuition Backend - Stripe Checkout Gateway
==========================================

What:  PaymentGateway implementation backed by Stripe hosted Checkout.
How:   Calls the stripe SDK off the event loop (asyncio.to_thread), retries
       transient failures with tenacity, and guards the provider with a
       circuit breaker so a Stripe outage fails fast instead of tying up
       request handlers.
Who:   Module singleton `stripe_gateway`, handed to routes by
       `get_payment_gateway()`.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter, only for transient
       errors (connection failures, 429 rate limiting)
    2. Circuit breaker counting provider-side failures; client mistakes such
       as an unknown session id do not count
    3. Every provider error leaves this module as PaymentProviderError or
       CircuitBreakerOpenError; stripe exception types never reach routes
"""

import asyncio
import logging
import time
import uuid
from typing import Any, Callable, Dict, Optional

import stripe
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)
from tenacity.wait import wait_base

from etuition.config import settings
from etuition.exceptions import CircuitBreakerOpenError, PaymentProviderError
from etuition.services.payment_base import CheckoutLineItem, CheckoutSession, PaymentGateway

logger = logging.getLogger(__name__)

# Captured at import so the except clauses keep working when tests patch
# individual stripe resources
TRANSIENT_STRIPE_ERRORS = (stripe.APIConnectionError, stripe.RateLimitError)
CLIENT_STRIPE_ERRORS = (stripe.InvalidRequestError, stripe.CardError)
StripeError = stripe.StripeError


# ══════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ══════════════════════════════════════════════════════════════════════════

class CircuitBreaker:
    """
    Circuit breaker for provider calls.

    State Machine:
        CLOSED (normal operation)
            → On failure: increment failure_count
            → When failure_count >= threshold: transition to OPEN
        OPEN (rejecting all requests)
            → All calls raise CircuitBreakerOpenError immediately
            → After recovery_timeout seconds: transition to HALF_OPEN
        HALF_OPEN (testing recovery)
            → Allow the next request through
            → On success: CLOSED; on failure: back to OPEN

    Not shared across worker processes; each uvicorn worker trips on its own.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns:
            True if the call may proceed.

        Raises:
            CircuitBreakerOpenError while OPEN and the recovery timeout has
            not elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Payment circuit breaker transitioning to HALF_OPEN after %.1fs",
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=max(remaining, 1))

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Payment circuit breaker transitioning to CLOSED (provider recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Payment circuit breaker returning to OPEN (test request failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Payment circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


# ══════════════════════════════════════════════════════════════════════════
# Stripe Gateway
# ══════════════════════════════════════════════════════════════════════════

def _metadata_dict(metadata: Any) -> Dict[str, str]:
    if metadata is None:
        return {}
    if hasattr(metadata, "to_dict"):
        items = metadata.to_dict().items()
    else:
        items = dict(metadata).items()
    return {str(k): str(v) for k, v in items}


def _to_checkout_session(session: Any) -> CheckoutSession:
    """Map a stripe.checkout.Session onto the neutral value type."""
    payment_intent = getattr(session, "payment_intent", None)
    # payment_intent is an id unless the caller asked Stripe to expand it
    if payment_intent is not None and not isinstance(payment_intent, str):
        payment_intent = getattr(payment_intent, "id", None)

    return CheckoutSession(
        id=session.id,
        url=getattr(session, "url", None),
        payment_status=getattr(session, "payment_status", None) or "unpaid",
        payment_intent=payment_intent,
        amount_total=getattr(session, "amount_total", None),
        currency=getattr(session, "currency", None),
        customer_email=getattr(session, "customer_email", None),
        metadata=_metadata_dict(getattr(session, "metadata", None)),
    )


class StripeGateway(PaymentGateway):
    """
    Stripe Checkout implementation of PaymentGateway.

    Error Handling Chain:
        Transient error → tenacity retries (retry_max_attempts, backoff)
        → still failing → circuit breaker failure + PaymentProviderError
        → threshold reached → later calls rejected with CircuitBreakerOpenError
        Client error (unknown session, bad params) → PaymentProviderError,
        breaker untouched
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        max_attempts: Optional[int] = None,
        retry_wait: Optional[wait_base] = None,
    ):
        self.api_key = settings.stripe_secret_key if api_key is None else api_key
        self.max_attempts = max_attempts or settings.retry_max_attempts
        self.retry_wait = retry_wait or wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        )
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

        if self.api_key:
            # Bounded network timeout; retries are owned by tenacity below
            stripe.default_http_client = stripe.RequestsClient(timeout=settings.stripe_timeout)
            stripe.max_network_retries = 0
            logger.info(
                "StripeGateway initialized, circuit_breaker(threshold=%d, recovery=%ds)",
                settings.cb_failure_threshold,
                settings.cb_recovery_timeout,
            )
        else:
            logger.warning("Stripe secret key not configured; checkout calls will fail")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def create_checkout_session(
        self,
        *,
        line_item: CheckoutLineItem,
        currency: str,
        metadata: Dict[str, str],
        customer_email: Optional[str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        params: Dict[str, Any] = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "unit_amount": line_item.unit_amount,
                        "product_data": {
                            "name": line_item.name,
                            "description": line_item.description,
                        },
                    },
                    "quantity": line_item.quantity,
                }
            ],
            "metadata": metadata,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if customer_email:
            params["customer_email"] = customer_email

        session = await self._call("checkout.Session.create", stripe.checkout.Session.create, **params)
        return _to_checkout_session(session)

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        session = await self._call(
            "checkout.Session.retrieve", stripe.checkout.Session.retrieve, session_id
        )
        return _to_checkout_session(session)

    async def health_check(self) -> str:
        if not self.configured:
            return "unconfigured"
        if self.circuit_breaker.state == CircuitBreaker.OPEN:
            return "circuit_open"
        return "available"

    async def _call(self, operation: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """
        Run one stripe SDK call with breaker, retries and error translation.

        Raises:
            PaymentProviderError: Stripe rejected the call or stayed unreachable.
            CircuitBreakerOpenError: too many recent provider failures.
        """
        if not self.configured:
            raise PaymentProviderError(
                message="Payments are not configured on this server.",
                context={"operation": operation},
            )

        call_id = str(uuid.uuid4())[:8]
        self.circuit_breaker.can_execute()

        start_time = time.time()
        try:
            result = None
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(TRANSIENT_STRIPE_ERRORS),
                stop=stop_after_attempt(self.max_attempts),
                wait=self.retry_wait,
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    result = await asyncio.to_thread(fn, *args, api_key=self.api_key, **kwargs)

            self.circuit_breaker.record_success()
            logger.info(
                "[%s] Stripe %s completed in %.0fms",
                call_id,
                operation,
                (time.time() - start_time) * 1000,
            )
            return result

        except CLIENT_STRIPE_ERRORS as e:
            logger.warning("[%s] Stripe rejected %s: %s", call_id, operation, e)
            raise PaymentProviderError(
                message="The payment provider rejected the request.",
                context={"operation": operation, "call_id": call_id},
            )
        except StripeError as e:
            self.circuit_breaker.record_failure()
            logger.error(
                "[%s] Stripe %s failed after %.0fms: %s",
                call_id,
                operation,
                (time.time() - start_time) * 1000,
                e,
            )
            raise PaymentProviderError(
                context={
                    "operation": operation,
                    "call_id": call_id,
                    "error_type": type(e).__name__,
                },
            )


# ── Singleton Instance ────────────────────────────────────────────────────
# Holds the circuit breaker state, which must be shared across requests
stripe_gateway = StripeGateway()


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency returning the process-wide gateway."""
    return stripe_gateway
