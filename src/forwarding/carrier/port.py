"""Carrier port — outbound side of the carrier integrations.

Inbound tracking updates arrive as commands (webhook or scrape) and do not
go through this port.
"""

from abc import ABC, abstractmethod


class CarrierPort(ABC):
    """Abstract interface for carrier adapters."""

    @abstractmethod
    def register_tracking(self, shipment_id: str, tier: str, carrier: str, tracking_number: str) -> dict:
        """Subscribe to updates for a tracking number.

        Returns:
            dict with keys: registered (bool), subscription_id, error (optional)
        """
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        """Verify that a webhook callback is authentic."""
        ...
