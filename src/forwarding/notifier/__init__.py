"""Notifier adapter — hands "notify customer" requests to the delivery service."""

import os

_notifier_instance = None


def get_notifier():
    """Return the configured notifier adapter (singleton).

    Uses FakeNotifier by default. Configure via the FORWARDING_NOTIFIER
    environment variable.
    """
    global _notifier_instance
    if _notifier_instance is None:
        adapter = os.environ.get("FORWARDING_NOTIFIER", "fake")
        if adapter == "fake":
            from forwarding.notifier.fake_adapter import FakeNotifier

            _notifier_instance = FakeNotifier()
        else:
            raise ValueError(f"Unknown notifier adapter: {adapter}")
    return _notifier_instance


def reset_notifier():
    """Reset the notifier singleton (useful for testing)."""
    global _notifier_instance
    _notifier_instance = None
