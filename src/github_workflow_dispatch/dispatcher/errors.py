"""Fatal error conditions for a dispatch invocation.

Transient polling failures never surface as one of these; they are retried in place.
"""

from __future__ import annotations


class DispatchError(Exception):
    """Base class for conditions that abort the remaining phases of an invocation."""


class WorkflowDispatchError(DispatchError):
    """The dispatch request itself was rejected or could not be sent."""


class RunResolveTimeout(DispatchError):
    """No matching run appeared before the trigger deadline."""

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"timeout: workflow run did not appear within {_format_seconds(timeout_seconds)}"
        )


class WorkflowRunFailed(DispatchError):
    """The tracked run completed without success and failures are propagated."""

    def __init__(self, *, run_id: int, conclusion: str) -> None:
        self.run_id = run_id
        self.conclusion = conclusion
        super().__init__(f"workflow failed with conclusion: {conclusion or 'unknown'}")


def _format_seconds(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value)}s"
    return f"{value}s"
