"""Configurable fake payment gateway for development and testing.

Records every request and acknowledges it without settling anything;
settlement is simulated by posting a confirmation to the webhook endpoint.
Requests repeated with the same idempotency key are acknowledged again with
the original reference and are not recorded twice.
"""

from uuid import uuid4

from storefront.payments.gateway.port import GatewayAck, PaymentGateway


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []
        self._references: dict[str, str] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def _acknowledge(self, call: dict, prefix: str) -> GatewayAck:
        key = call["idempotency_key"]
        if key in self._references:
            return GatewayAck(accepted=True, reference=self._references[key])

        self.calls.append(call)
        if not self.should_succeed:
            return GatewayAck(accepted=False, failure_reason=self.failure_reason)

        reference = f"{prefix}_{uuid4().hex[:12]}"
        self._references[key] = reference
        return GatewayAck(accepted=True, reference=reference)

    def request_charge(self, order_id, amount, currency, idempotency_key) -> GatewayAck:
        call = {
            "method": "request_charge",
            "order_id": order_id,
            "amount": amount,
            "currency": currency,
            "idempotency_key": idempotency_key,
        }
        return self._acknowledge(call, "fake_pay")

    def request_refund(self, order_id, payment_id, amount, currency, idempotency_key) -> GatewayAck:
        call = {
            "method": "request_refund",
            "order_id": order_id,
            "payment_id": payment_id,
            "amount": amount,
            "currency": currency,
            "idempotency_key": idempotency_key,
        }
        return self._acknowledge(call, "fake_ref")

    def calls_for(self, method: str) -> list[dict]:
        return [c for c in self.calls if c["method"] == method]

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:  # noqa: ARG002
        return signature == "test-signature"
