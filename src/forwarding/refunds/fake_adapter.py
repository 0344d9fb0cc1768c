"""Configurable fake refund intake for development and testing."""

from uuid import uuid4

from forwarding.refunds.port import RefundPort, RefundRequestResult


class FakeRefunds(RefundPort):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Refund rejected"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Refund rejected") -> None:
        """Configure refund behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def request_refund(
        self,
        order_id: str,
        item_id: str,
        amount: float,
        currency: str,
        reason: str,
    ) -> RefundRequestResult:
        self.calls.append(
            {
                "order_id": order_id,
                "item_id": item_id,
                "amount": amount,
                "currency": currency,
                "reason": reason,
            }
        )
        if not self.should_succeed:
            return RefundRequestResult(accepted=False, failure_reason=self.failure_reason)
        return RefundRequestResult(accepted=True, request_id=f"fake_refund_{uuid4().hex[:12]}")
