"""Port for refund requests sent to the payment collaborator."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RefundRequestResult:
    """Outcome of handing a refund request to the payment collaborator."""

    accepted: bool
    request_id: str | None = None
    failure_reason: str | None = None


class RefundPort(ABC):
    @abstractmethod
    def request_refund(
        self,
        order_id: str,
        item_id: str,
        amount: float,
        currency: str,
        reason: str,
    ) -> RefundRequestResult:
        """Ask the payment collaborator to refund ``amount`` for an item."""
        ...
