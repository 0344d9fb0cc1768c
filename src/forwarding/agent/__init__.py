"""Automation agent adapter registry."""

import os

_agent_instance = None


def get_agent():
    """Return the configured automation agent adapter (singleton).

    Uses FakeAgent by default. Configure via the FORWARDING_AGENT
    environment variable.
    """
    global _agent_instance
    if _agent_instance is None:
        adapter = os.environ.get("FORWARDING_AGENT", "fake")
        if adapter == "fake":
            from forwarding.agent.fake_adapter import FakeAgent

            _agent_instance = FakeAgent()
        else:
            raise ValueError(f"Unknown automation agent adapter: {adapter}")
    return _agent_instance


def reset_agent():
    """Reset the agent singleton (useful for testing)."""
    global _agent_instance
    _agent_instance = None
