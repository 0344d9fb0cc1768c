"""In-memory automation agent that records submissions instead of running them."""

from uuid import uuid4

from forwarding.agent.port import AutomationAgentPort


class FakeAgent(AutomationAgentPort):
    """Accepts every submission by default."""

    def __init__(self):
        self.should_accept = True
        self.failure_reason = "Agent unavailable"
        self.submissions: list[dict] = []

    def configure(self, should_accept: bool = True, failure_reason: str = "Agent unavailable"):
        """Configure the fake agent behavior for testing."""
        self.should_accept = should_accept
        self.failure_reason = failure_reason

    def reset(self):
        self.should_accept = True
        self.failure_reason = "Agent unavailable"
        self.submissions = []

    def submit(self, task_id: str, task_type: str, config: dict, attempt: int) -> dict:
        self.submissions.append({"task_id": task_id, "task_type": task_type, "config": config, "attempt": attempt})
        if not self.should_accept:
            return {"accepted": False, "reference": None, "error": self.failure_reason}
        return {"accepted": True, "reference": f"run-{uuid4().hex[:10]}", "error": None}

    def submissions_for(self, task_id: str) -> list[dict]:
        return [s for s in self.submissions if s["task_id"] == task_id]
