"""In-memory notifier that records requests for test assertions."""

from uuid import uuid4

from forwarding.notifier.port import NotificationType, NotifierPort


class FakeNotifier(NotifierPort):
    def __init__(self):
        self.requests: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification service unavailable"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification service unavailable"):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify(self, customer_id: str, event_type: NotificationType, payload: dict) -> dict:
        if not self.should_succeed:
            return {"request_id": None, "status": "failed", "error": self.failure_reason}

        request_id = f"notify-{uuid4().hex[:12]}"
        self.requests.append(
            {
                "request_id": request_id,
                "customer_id": customer_id,
                "event_type": event_type.value,
                "payload": payload,
            }
        )
        return {"request_id": request_id, "status": "accepted"}

    def requests_of(self, event_type: NotificationType) -> list[dict]:
        return [r for r in self.requests if r["event_type"] == event_type.value]

    def reset(self):
        """Clear recorded requests (useful between tests)."""
        self.requests.clear()
        self.should_succeed = True
        self.failure_reason = "Notification service unavailable"
