"""Automation agent port — abstract interface for task executors.

Agents run the actual browser/API automation against seller and carrier
sites. Submission is fire-and-forget: the agent reports the outcome later
through the ReportTaskResult command, quoting the task id and attempt.
"""

from abc import ABC, abstractmethod


class AutomationAgentPort(ABC):
    """Abstract interface for automation agent adapters."""

    @abstractmethod
    def submit(self, task_id: str, task_type: str, config: dict, attempt: int) -> dict:
        """Hand a task attempt to the agent.

        Returns:
            dict with keys: accepted (bool), reference (str | None), error (str | None)
        """
        ...
