"""Payment gateway port (abstract interface).

The storefront only states intents: charge this order, refund that one. The
gateway answers with whether it accepted the request; settlement is reported
later through a signed webhook that becomes a ``ConfirmPayment`` command.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class GatewayAck:
    """The gateway's acknowledgement of a charge or refund request."""

    accepted: bool
    reference: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def request_charge(
        self,
        order_id: str,
        amount: float,
        currency: str,
        idempotency_key: str,
    ) -> GatewayAck:
        """Ask the gateway to capture ``amount`` for the order."""
        ...

    @abstractmethod
    def request_refund(
        self,
        order_id: str,
        payment_id: str | None,
        amount: float,
        currency: str,
        idempotency_key: str,
    ) -> GatewayAck:
        """Ask the gateway to refund a captured payment."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...
