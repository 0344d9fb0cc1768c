"""Refund adapter factory.

Provides get_refunds() / set_refunds() to swap the payment collaborator's
refund intake. Only the in-memory FakeRefunds ships with this package.
"""

import os

from forwarding.refunds.port import RefundPort

_current_refunds: RefundPort | None = None


def get_refunds() -> RefundPort:
    """Return the current refund adapter. Defaults to FakeRefunds."""
    global _current_refunds
    if _current_refunds is None:
        adapter = os.environ.get("FORWARDING_REFUNDS", "fake")
        if adapter == "fake":
            from forwarding.refunds.fake_adapter import FakeRefunds

            _current_refunds = FakeRefunds()
        else:
            raise ValueError(f"Unknown refunds adapter: {adapter}")
    return _current_refunds


def set_refunds(refunds: RefundPort) -> None:
    """Override the active refund adapter (useful for tests)."""
    global _current_refunds
    _current_refunds = refunds


def reset_refunds() -> None:
    """Reset to default adapter."""
    global _current_refunds
    _current_refunds = None
