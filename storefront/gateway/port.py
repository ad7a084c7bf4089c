"""Payment gateway port (abstract interface).

The checkout initiator and the webhook pipeline talk to the gateway only
through this contract, so the Stripe adapter can be swapped for the
in-memory fake in development and tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class SessionLine:
    """One priced line of a checkout session, amounts in minor units."""

    product_id: int
    name: str
    unit_amount: int
    quantity: int
    image_url: str | None = None


@dataclass(frozen=True)
class CheckoutSessionRequest:
    lines: list[SessionLine]
    currency: str
    success_url: str
    cancel_url: str
    shipping_countries: list[str] = field(default_factory=list)
    discount_amount: int = 0
    discount_label: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CheckoutSessionResult:
    session_id: str
    url: str


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_checkout_session(self, request: CheckoutSessionRequest) -> CheckoutSessionResult:
        """Create a hosted checkout session and return its redirect URL."""
        ...

    @abstractmethod
    def retrieve_checkout_session(self, session_id: str) -> dict:
        """Return the session as a plain dict with line items, products and customer details expanded."""
        ...
