"""
eTuition Backend - Abstract Payment Gateway Interface
=====================================================

What:  Contract for the hosted-checkout provider used by PaymentService.
How:   Concrete gateways (StripeGateway) implement the three coroutines below
       and translate provider objects into the neutral CheckoutSession value.
Who:   PaymentService receives a gateway through FastAPI dependency injection
       (`get_payment_gateway`); tests inject an in-memory fake.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass(frozen=True)
class CheckoutLineItem:
    """A single charge on the hosted checkout page."""

    name: str
    description: str
    unit_amount: int  # minor units (cents)
    quantity: int = 1


@dataclass(frozen=True)
class CheckoutSession:
    """
    Provider-neutral view of a checkout session.

    Attributes:
        id:             Opaque provider session id (echoed back on success).
        url:            Hosted payment page the client is redirected to.
        payment_status: "paid", "unpaid" or "no_payment_required".
        payment_intent: Provider transaction id; set once the payment exists.
        amount_total:   Total charged, in minor units.
        metadata:       The string map given at creation time.
    """

    id: str
    url: Optional[str] = None
    payment_status: str = "unpaid"
    payment_intent: Optional[str] = None
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    customer_email: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"


class PaymentGateway(ABC):
    """
    Abstract interface for a hosted checkout provider.

    Contract:
        - create_checkout_session() returns a session whose `url` is set
        - retrieve_checkout_session() returns the current provider state
        - Provider failures are raised as PaymentProviderError, or
          CircuitBreakerOpenError when the gateway is failing fast
    """

    @abstractmethod
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
        """Create a one-off payment session for `line_item`."""
        ...

    @abstractmethod
    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        """Fetch a session by id."""
        ...

    @abstractmethod
    async def health_check(self) -> str:
        """
        Report gateway status without calling the provider.

        Returns: "available", "unconfigured" or "circuit_open".
        """
        ...
