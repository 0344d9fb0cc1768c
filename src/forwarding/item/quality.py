"""Quality inspection command and handler."""

import json

from protean import handle
from protean.fields import Boolean, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from forwarding.domain import forwarding
from forwarding.item.item import OrderItem
from forwarding.shared.errors import assert_expected_version


@forwarding.command(part_of="OrderItem")
class RecordQualityCheck:
    """Record the warehouse inspection result for an item."""

    item_id = Identifier(required=True)
    passed = Boolean(required=True)
    inspector = String(required=True, max_length=100)
    notes = Text()
    photos = Text()  # JSON list of photo URLs
    actual_weight = Float(min_value=0.0)
    expected_version = Integer()


@forwarding.command_handler(part_of=OrderItem)
class QualityCheckHandler:
    @handle(RecordQualityCheck)
    def record_quality_check(self, command):
        repo = current_domain.repository_for(OrderItem)
        item = repo.get(command.item_id)
        assert_expected_version(item, command.expected_version)
        photos = json.loads(command.photos) if command.photos else []
        item.record_quality_check(
            passed=command.passed,
            inspector=command.inspector,
            notes=command.notes,
            photos=photos,
            actual_weight=command.actual_weight,
        )
        repo.add(item)
