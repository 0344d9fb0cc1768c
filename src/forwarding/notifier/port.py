"""Notifier port — channel selection and delivery belong to the collaborator."""

from abc import ABC, abstractmethod
from enum import Enum


class NotificationType(Enum):
    STATUS_CHANGED = "status_changed"
    APPROVAL_NEEDED = "approval_needed"
    EXCEPTION_RAISED = "exception_raised"
    SHIPMENT_DISPATCHED = "shipment_dispatched"
    DELIVERED = "delivered"


class NotifierPort(ABC):
    @abstractmethod
    def notify(self, customer_id: str, event_type: NotificationType, payload: dict) -> dict:
        """Request a customer notification.

        Returns:
            dict with keys: request_id, status ("accepted" or "failed"), error (optional)
        """
        ...
