"""In-memory carrier that records tracking registrations."""

from uuid import uuid4

from forwarding.carrier.port import CarrierPort


class FakeCarrier(CarrierPort):
    """Fake carrier that accepts every registration by default."""

    def __init__(self):
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
        self.registrations: list[dict] = []

    def configure(self, should_succeed: bool = True, failure_reason: str = "Carrier unavailable"):
        """Configure the fake carrier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def reset(self):
        self.registrations.clear()
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"

    def register_tracking(self, shipment_id: str, tier: str, carrier: str, tracking_number: str) -> dict:
        if not self.should_succeed:
            return {"registered": False, "subscription_id": None, "error": self.failure_reason}

        subscription_id = f"sub-{uuid4().hex[:10]}"
        self.registrations.append(
            {
                "shipment_id": shipment_id,
                "tier": tier,
                "carrier": carrier,
                "tracking_number": tracking_number,
                "subscription_id": subscription_id,
            }
        )
        return {"registered": True, "subscription_id": subscription_id}

    def verify_webhook_signature(self, _payload: str, _signature: str) -> bool:
        # FakeCarrier accepts any signature (or empty signature) for testing
        return True
