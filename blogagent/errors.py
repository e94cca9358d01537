"""Error taxonomy shared by the store, the workflow and the API layer."""

from __future__ import annotations

from typing import Iterable


class BlogAgentError(Exception):
    """Base class for all blogagent errors."""


class NotFoundError(BlogAgentError):
    """Referenced job or schedule does not exist."""

    def __init__(self, kind: str, item_id: str):
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"{kind} not found: {item_id}")


class InvalidStateError(BlogAgentError):
    """Action does not apply to the job's current status."""

    def __init__(self, job_id: str, current_status: str, expected: Iterable[str] = ()):
        self.job_id = job_id
        self.current_status = current_status
        self.expected = [str(e) for e in expected]
        allowed = ", ".join(self.expected) or "-"
        super().__init__(
            f"Job {job_id} is in status '{current_status}' (expected: {allowed})"
        )


class InvalidInputError(BlogAgentError):
    """Malformed or missing request input."""


class StepFailure(BlogAgentError):
    """A workflow step (external tool call) failed."""

    def __init__(self, step: str, message: str, artifacts: dict | None = None):
        self.step = step
        self.message = message
        # Partial results to keep on the failed job for diagnosis
        self.artifacts = artifacts or {}
        super().__init__(f"{step}: {message}")


class TransportFailure(BlogAgentError):
    """The progress stream channel dropped."""
