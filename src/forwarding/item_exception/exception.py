"""ItemException aggregate (CQRS) — an out-of-band failure on one item.

Each exception is classified on detection: a severity from its type and
financial impact, the set of resolutions the customer may choose from, a
recommended resolution and a response deadline. When the deadline passes
without a customer choice, the recommended resolution is applied
automatically.

State Machine:
    pending → {in_progress, escalated, resolved}
    in_progress → {escalated, resolved}
    escalated → resolved
    resolved → closed

An open (pending or in_progress) exception raised from a carrier update is
also closed without a resolution once the shipment moves on.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String, Text

from forwarding.domain import forwarding
from forwarding.item_exception.events import (
    ExceptionAcknowledged,
    ExceptionClosed,
    ExceptionEscalated,
    ExceptionReported,
    ExceptionResolved,
)
from forwarding.shared.clock import has_elapsed
from forwarding.shared.errors import AlreadyResolved, DeadlinePassed


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ExceptionType(Enum):
    SELLER_CANCELLED = "seller_cancelled"
    SELLER_OUT_OF_STOCK = "seller_out_of_stock"
    WRONG_ITEM_SENT = "wrong_item_sent"
    DAMAGED_IN_TRANSIT = "damaged_in_transit"
    QUALITY_CHECK_FAILED = "quality_check_failed"
    CUSTOMS_ISSUE = "customs_issue"
    DELIVERY_FAILED = "delivery_failed"
    PRICE_VARIANCE = "price_variance"
    WEIGHT_VARIANCE = "weight_variance"
    CUSTOMER_COMPLAINT = "customer_complaint"
    AUTOMATION_FAILED = "automation_failed"


class DetectedBy(Enum):
    AUTOMATION = "automation"
    QUALITY_CHECK = "quality_check"
    CUSTOMER_REPORT = "customer_report"
    ADMIN_REVIEW = "admin_review"
    SELLER_NOTIFICATION = "seller_notification"


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ResolutionStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    ESCALATED = "escalated"
    CLOSED = "closed"


class Resolution(Enum):
    REFUND = "refund"
    REPLACEMENT = "replacement"
    ALTERNATIVE_SOURCE = "alternative_source"
    STORE_CREDIT = "store_credit"
    PARTIAL_REFUND_KEEP = "partial_refund_keep"
    CANCEL = "cancel"


class ImpactCategory(Enum):
    NO_COST = "no_cost"
    LOW_COST = "low_cost"
    MEDIUM_COST = "medium_cost"
    HIGH_COST = "high_cost"


_VALID_TRANSITIONS = {
    ResolutionStatus.PENDING: {ResolutionStatus.IN_PROGRESS, ResolutionStatus.ESCALATED, ResolutionStatus.RESOLVED},
    ResolutionStatus.IN_PROGRESS: {ResolutionStatus.ESCALATED, ResolutionStatus.RESOLVED},
    ResolutionStatus.ESCALATED: {ResolutionStatus.RESOLVED},
    ResolutionStatus.RESOLVED: {ResolutionStatus.CLOSED},
    ResolutionStatus.CLOSED: set(),  # terminal
}

_SETTLED = {ResolutionStatus.RESOLVED, ResolutionStatus.CLOSED}

_SEVERITY_ORDER = [Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL]

_BASE_SEVERITY = {
    ExceptionType.SELLER_CANCELLED: Severity.MEDIUM,
    ExceptionType.SELLER_OUT_OF_STOCK: Severity.MEDIUM,
    ExceptionType.WRONG_ITEM_SENT: Severity.HIGH,
    ExceptionType.DAMAGED_IN_TRANSIT: Severity.HIGH,
    ExceptionType.QUALITY_CHECK_FAILED: Severity.MEDIUM,
    ExceptionType.CUSTOMS_ISSUE: Severity.HIGH,
    ExceptionType.DELIVERY_FAILED: Severity.MEDIUM,
    ExceptionType.PRICE_VARIANCE: Severity.LOW,
    ExceptionType.WEIGHT_VARIANCE: Severity.LOW,
    ExceptionType.CUSTOMER_COMPLAINT: Severity.MEDIUM,
    ExceptionType.AUTOMATION_FAILED: Severity.LOW,
}

_R = Resolution
_RESOLUTIONS = {
    ExceptionType.SELLER_CANCELLED: ([_R.REFUND, _R.ALTERNATIVE_SOURCE, _R.STORE_CREDIT], _R.REFUND),
    ExceptionType.SELLER_OUT_OF_STOCK: ([_R.REFUND, _R.ALTERNATIVE_SOURCE, _R.STORE_CREDIT], _R.REFUND),
    ExceptionType.WRONG_ITEM_SENT: ([_R.REPLACEMENT, _R.REFUND, _R.PARTIAL_REFUND_KEEP], _R.REPLACEMENT),
    ExceptionType.DAMAGED_IN_TRANSIT: ([_R.REPLACEMENT, _R.REFUND, _R.PARTIAL_REFUND_KEEP], _R.REFUND),
    ExceptionType.QUALITY_CHECK_FAILED: (
        [_R.REPLACEMENT, _R.REFUND, _R.PARTIAL_REFUND_KEEP, _R.STORE_CREDIT],
        _R.REPLACEMENT,
    ),
    ExceptionType.CUSTOMS_ISSUE: ([_R.REFUND, _R.STORE_CREDIT], _R.STORE_CREDIT),
    ExceptionType.DELIVERY_FAILED: ([_R.REPLACEMENT, _R.REFUND], _R.REPLACEMENT),
    ExceptionType.PRICE_VARIANCE: ([_R.REFUND, _R.STORE_CREDIT, _R.ALTERNATIVE_SOURCE, _R.CANCEL], _R.REFUND),
    ExceptionType.WEIGHT_VARIANCE: ([_R.REFUND, _R.STORE_CREDIT, _R.ALTERNATIVE_SOURCE, _R.CANCEL], _R.REFUND),
    ExceptionType.CUSTOMER_COMPLAINT: ([_R.REFUND, _R.PARTIAL_REFUND_KEEP, _R.STORE_CREDIT], _R.STORE_CREDIT),
    ExceptionType.AUTOMATION_FAILED: ([_R.ALTERNATIVE_SOURCE, _R.REFUND], _R.ALTERNATIVE_SOURCE),
}

# Resolutions whose payout equals the item's value
_FULL_VALUE = {Resolution.REFUND, Resolution.STORE_CREDIT}


def classify_severity(exception_type: ExceptionType, financial_impact: float) -> Severity:
    """Base severity for the type, raised by large financial impact."""
    severity = _BASE_SEVERITY[exception_type]
    impact = abs(financial_impact or 0.0)
    if impact >= 500:
        return Severity.CRITICAL
    if impact >= 100:
        return _SEVERITY_ORDER[min(_SEVERITY_ORDER.index(severity) + 1, len(_SEVERITY_ORDER) - 1)]
    return severity


def impact_category(cost: float) -> ImpactCategory:
    cost = abs(cost or 0.0)
    if cost == 0:
        return ImpactCategory.NO_COST
    if cost < 50:
        return ImpactCategory.LOW_COST
    if cost < 200:
        return ImpactCategory.MEDIUM_COST
    return ImpactCategory.HIGH_COST


def resolutions_for(exception_type: ExceptionType) -> tuple[list[Resolution], Resolution]:
    return _RESOLUTIONS[exception_type]


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@forwarding.aggregate
class ItemException:
    item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    shipment_id = Identifier()
    exception_type = String(required=True, max_length=30, choices=ExceptionType)
    detected_by = String(required=True, max_length=30, choices=DetectedBy)
    severity = String(max_length=10, choices=Severity)
    title = String(max_length=200)
    description = Text()

    # Financials
    item_value = Float(default=0.0)
    financial_impact = Float(default=0.0)
    impact_category = String(max_length=20, choices=ImpactCategory)
    resolution_amount = Float(default=0.0)
    cost_to_business = Float(default=0.0)

    # Resolution
    available_resolutions = Text()  # JSON list of Resolution values
    recommended_resolution = String(max_length=30, choices=Resolution)
    customer_response_deadline = DateTime()
    customer_choice = String(max_length=30, choices=Resolution)
    customer_notes = Text()
    resolution_status = String(
        max_length=20,
        choices=ResolutionStatus,
        default=ResolutionStatus.PENDING.value,
    )
    resolution_method = String(max_length=30, choices=Resolution)
    resolution_notes = Text()
    handled_by = String(max_length=100)
    escalated_by = String(max_length=100)
    escalation_reason = Text()
    resolved_by = String(max_length=100)
    resolved_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def report(
        cls,
        item,
        exception_type: ExceptionType,
        detected_by: DetectedBy,
        response_hours: int,
        description: str | None = None,
        financial_impact: float = 0.0,
        shipment_id: str | None = None,
        recommended_resolution: Resolution | None = None,
    ):
        """Classify a detected anomaly on ``item`` and open it for a response."""
        available, recommended = resolutions_for(exception_type)
        if recommended_resolution is not None:
            if recommended_resolution not in available:
                raise ValidationError(
                    {
                        "recommended_resolution": [
                            f"{recommended_resolution.value} is not offered for {exception_type.value}"
                        ]
                    }
                )
            recommended = recommended_resolution

        now = datetime.now(UTC)
        severity = classify_severity(exception_type, financial_impact)
        exc = cls(
            item_id=str(item.id),
            order_id=str(item.order_id),
            customer_id=str(item.customer_id),
            shipment_id=shipment_id,
            exception_type=exception_type.value,
            detected_by=detected_by.value,
            severity=severity.value,
            title=f"{exception_type.value.replace('_', ' ').capitalize()}: {item.product_name}"[:200],
            description=description,
            item_value=round((item.current_price or 0.0) * (item.quantity or 1), 2),
            financial_impact=financial_impact,
            impact_category=impact_category(financial_impact).value,
            available_resolutions=json.dumps([r.value for r in available]),
            recommended_resolution=recommended.value,
            customer_response_deadline=now + timedelta(hours=response_hours),
            resolution_status=ResolutionStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        exc.raise_(
            ExceptionReported(
                exception_id=str(exc.id),
                item_id=exc.item_id,
                order_id=exc.order_id,
                customer_id=exc.customer_id,
                shipment_id=shipment_id,
                exception_type=exc.exception_type,
                severity=exc.severity,
                detected_by=exc.detected_by,
                title=exc.title,
                available_resolutions=exc.available_resolutions,
                recommended_resolution=exc.recommended_resolution,
                financial_impact=financial_impact,
                customer_response_deadline=exc.customer_response_deadline,
                reported_at=now,
            )
        )
        return exc

    @property
    def resolutions(self) -> list[Resolution]:
        return [Resolution(r) for r in json.loads(self.available_resolutions or "[]")]

    @property
    def is_settled(self) -> bool:
        return ResolutionStatus(self.resolution_status) in _SETTLED

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: ResolutionStatus) -> None:
        current = ResolutionStatus(self.resolution_status)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError(
                {"resolution_status": [f"Cannot transition from {current.value} to {target.value}"]}
            )

    def _resolve(
        self,
        method: Resolution,
        resolved_by: str,
        notes: str | None,
        amount: float | None,
        now: datetime,
        auto_resolved: bool = False,
    ) -> None:
        if self.is_settled:
            raise AlreadyResolved(f"Exception {self.id} is already {self.resolution_status}")
        self._assert_can_transition(ResolutionStatus.RESOLVED)
        if method not in self.resolutions:
            raise ValidationError(
                {"resolution_method": [f"{method.value} is not offered for {self.exception_type}"]}
            )

        if method in _FULL_VALUE:
            resolution_amount = self.item_value
        elif method == Resolution.PARTIAL_REFUND_KEEP:
            resolution_amount = amount if amount is not None else self.financial_impact
            if resolution_amount <= 0 or resolution_amount > self.item_value:
                raise ValidationError({"amount": ["Partial refund must be positive and at most the item value"]})
        else:
            resolution_amount = 0.0

        self.resolution_status = ResolutionStatus.RESOLVED.value
        self.resolution_method = method.value
        self.resolution_amount = round(resolution_amount, 2)
        self.cost_to_business = round(resolution_amount or self.financial_impact or 0.0, 2)
        self.impact_category = impact_category(self.cost_to_business).value
        self.resolution_notes = notes
        self.resolved_by = resolved_by
        self.resolved_at = now
        self.updated_at = now
        self.raise_(
            ExceptionResolved(
                exception_id=str(self.id),
                item_id=str(self.item_id),
                order_id=str(self.order_id),
                customer_id=str(self.customer_id),
                exception_type=self.exception_type,
                resolution_method=method.value,
                resolution_amount=self.resolution_amount,
                resolved_by=resolved_by,
                auto_resolved=auto_resolved,
                resolved_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Customer response
    # -------------------------------------------------------------------
    def respond(
        self,
        choice: Resolution,
        actor_id: str,
        note: str | None = None,
        amount: float | None = None,
        as_of: datetime | None = None,
    ) -> None:
        now = as_of or datetime.now(UTC)
        if self.is_settled:
            raise AlreadyResolved(f"Exception {self.id} is already {self.resolution_status}")
        if has_elapsed(self.customer_response_deadline, now):
            raise DeadlinePassed(f"Exception {self.id} response deadline has passed")

        self.customer_choice = choice.value
        self.customer_notes = note
        self._resolve(choice, actor_id, note, amount, now)

    # -------------------------------------------------------------------
    # Staff handling
    # -------------------------------------------------------------------
    def acknowledge(self, actor_id: str) -> None:
        self._assert_can_transition(ResolutionStatus.IN_PROGRESS)
        now = datetime.now(UTC)
        self.resolution_status = ResolutionStatus.IN_PROGRESS.value
        self.handled_by = actor_id
        self.updated_at = now
        self.raise_(
            ExceptionAcknowledged(
                exception_id=str(self.id),
                item_id=str(self.item_id),
                acknowledged_by=actor_id,
                acknowledged_at=now,
            )
        )

    def escalate(self, actor_id: str, reason: str | None = None) -> None:
        """Hand the exception to staff; escalated exceptions are never auto-resolved."""
        if self.is_settled:
            raise AlreadyResolved(f"Exception {self.id} is already {self.resolution_status}")
        self._assert_can_transition(ResolutionStatus.ESCALATED)
        now = datetime.now(UTC)
        self.resolution_status = ResolutionStatus.ESCALATED.value
        self.escalated_by = actor_id
        self.escalation_reason = reason
        self.updated_at = now
        self.raise_(
            ExceptionEscalated(
                exception_id=str(self.id),
                item_id=str(self.item_id),
                order_id=str(self.order_id),
                severity=self.severity,
                escalated_by=actor_id,
                reason=reason,
                escalated_at=now,
            )
        )

    def resolve(self, method: Resolution, actor_id: str, notes: str | None = None, amount: float | None = None):
        """Staff apply a resolution, with or without a customer choice."""
        self._resolve(method, actor_id, notes, amount, datetime.now(UTC))

    def close(self, actor_id: str) -> None:
        self._assert_can_transition(ResolutionStatus.CLOSED)
        now = datetime.now(UTC)
        self.resolution_status = ResolutionStatus.CLOSED.value
        self.updated_at = now
        self.raise_(
            ExceptionClosed(exception_id=str(self.id), item_id=str(self.item_id), closed_by=actor_id, closed_at=now)
        )

    def clear(self, reason: str) -> None:
        """Close an open exception whose cause went away, with no payout."""
        status = ResolutionStatus(self.resolution_status)
        if status not in (ResolutionStatus.PENDING, ResolutionStatus.IN_PROGRESS):
            raise ValidationError({"resolution_status": [f"Cannot clear an exception that is {status.value}"]})
        now = datetime.now(UTC)
        self.resolution_status = ResolutionStatus.CLOSED.value
        self.resolution_notes = reason
        self.resolved_by = "system"
        self.resolved_at = now
        self.updated_at = now
        self.raise_(
            ExceptionClosed(exception_id=str(self.id), item_id=str(self.item_id), closed_by="system", closed_at=now)
        )

    # -------------------------------------------------------------------
    # Deadline
    # -------------------------------------------------------------------
    def is_overdue(self, as_of: datetime) -> bool:
        status = ResolutionStatus(self.resolution_status)
        if status not in (ResolutionStatus.PENDING, ResolutionStatus.IN_PROGRESS):
            return False
        return has_elapsed(self.customer_response_deadline, as_of)

    def expire(self, as_of: datetime | None = None) -> None:
        """Apply the recommended resolution after an unanswered deadline."""
        now = as_of or datetime.now(UTC)
        if not self.is_overdue(now):
            raise ValidationError({"customer_response_deadline": ["Exception deadline has not passed"]})
        method = Resolution(self.recommended_resolution)
        if method == Resolution.PARTIAL_REFUND_KEEP and not 0 < (self.financial_impact or 0.0) <= self.item_value:
            # No usable amount to refund; take the first other offered resolution
            method = next(r for r in self.resolutions if r != Resolution.PARTIAL_REFUND_KEEP)
        notes = (
            f"Auto-resolved after deadline: no customer response by "
            f"{self.customer_response_deadline.isoformat()}; applied resolution "
            f"{method.value} (recommended {self.recommended_resolution}, detected by {self.detected_by})"
        )
        self._resolve(method, "system", notes, None, now, auto_resolved=True)
