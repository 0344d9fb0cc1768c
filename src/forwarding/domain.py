"""Forwarding bounded context — cross-border purchase fulfillment.

Coordinates everything that happens after a quote is paid: placing orders
with third-party sellers, receiving goods into regional warehouses, quality
inspection, consolidation into outbound shipments, and three-tier tracking
(seller → warehouse, warehouse → destination border, border → customer).
Price/weight revisions and item exceptions are first-class workflows with
customer-facing deadlines.
"""

from protean.domain import Domain

forwarding = Domain(name="forwarding")
