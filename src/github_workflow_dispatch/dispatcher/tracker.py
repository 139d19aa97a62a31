"""Wait for a workflow run to complete.

There is no deadline here: the loop ends only when GitHub reports the run as `completed`.
Polling slows down to at least 30s while the run is queued and returns to the configured
interval once it is executing.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from github_workflow_dispatch.dispatcher.errors import WorkflowRunFailed
from github_workflow_dispatch.dispatcher.github.client import TRANSIENT_ERRORS, WorkflowClient
from github_workflow_dispatch.dispatcher.progress import Throttle, format_elapsed

logger = logging.getLogger(__name__)

COMPLETED_STATUS = "completed"
IN_PROGRESS_STATUS = "in_progress"
QUEUED_STATUSES = frozenset({"queued", "waiting", "pending", "requested"})
SUCCESS_CONCLUSION = "success"

QUEUED_POLL_FLOOR_SECONDS = 30.0
STATUS_REPORT_INTERVAL_SECONDS = 30.0
ERROR_REPORT_INTERVAL_SECONDS = 10.0


@dataclass(frozen=True, slots=True)
class TrackedRun:
    """Final observation of a tracked run."""

    run_id: int
    status: str
    conclusion: str
    elapsed_seconds: float

    @property
    def succeeded(self) -> bool:
        return self.conclusion == SUCCESS_CONCLUSION


@dataclass(slots=True)
class TrackerState:
    """Mutable loop state owned by a single `CompletionTracker.wait` call."""

    last_status: str
    poll_interval: float
    started: float


def next_poll_interval(status: str, *, current: float, wait_interval: float) -> float:
    """Adapt the poll interval to the run's status.

    Queued runs are polled no faster than every 30s; running ones at the configured interval.
    Unknown statuses keep the current interval.
    """

    if status in QUEUED_STATUSES:
        return max(wait_interval, QUEUED_POLL_FLOOR_SECONDS)
    if status == IN_PROGRESS_STATUS:
        return wait_interval
    return current


def _status_label(status: str) -> str:
    if status in QUEUED_STATUSES:
        return "queued"
    return "running"


class CompletionTracker:
    def __init__(
        self,
        client: WorkflowClient,
        *,
        wait_interval: float,
        propagate_failure: bool = True,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if wait_interval <= 0:
            raise ValueError("wait_interval must be > 0")

        self._client = client
        self._wait_interval = wait_interval
        self._propagate_failure = propagate_failure
        self._sleep = sleep
        self._clock = clock

    def wait(self, run_id: int) -> TrackedRun:
        """Poll `run_id` until it completes.

        Raises:
            WorkflowRunFailed: the run concluded without success and failures propagate.
        """

        state = TrackerState(
            last_status="",
            poll_interval=self._wait_interval,
            started=self._clock(),
        )
        status_report = Throttle(min_interval=STATUS_REPORT_INTERVAL_SECONDS, clock=self._clock)
        error_report = Throttle(min_interval=ERROR_REPORT_INTERVAL_SECONDS, clock=self._clock)

        while True:
            self._sleep(state.poll_interval)

            try:
                run = self._client.get_run(run_id)
            except TRANSIENT_ERRORS as e:
                if error_report():
                    logger.warning(
                        "Error fetching status (retrying...)",
                        extra={"run_id": run_id, "error": str(e)},
                    )
                continue

            elapsed = self._clock() - state.started

            if run.status == COMPLETED_STATUS:
                result = TrackedRun(
                    run_id=run_id,
                    status=run.status,
                    conclusion=run.conclusion,
                    elapsed_seconds=elapsed,
                )
                if result.succeeded:
                    logger.info(
                        f"Completed successfully in {format_elapsed(elapsed)}",
                        extra={"run_id": run_id},
                    )
                    return result

                logger.warning(
                    f"Failed with status: {run.conclusion or 'unknown'} "
                    f"(duration: {format_elapsed(elapsed)})",
                    extra={"run_id": run_id, "conclusion": run.conclusion},
                )
                if self._propagate_failure:
                    raise WorkflowRunFailed(run_id=run_id, conclusion=run.conclusion)
                return result

            if run.status != state.last_status:
                logger.info(
                    f"Status: {_status_label(run.status)} (elapsed: {format_elapsed(elapsed)})",
                    extra={"run_id": run_id, "status": run.status},
                )
                state.last_status = run.status
                status_report.mark()
            elif status_report():
                logger.info(
                    f"Status: {_status_label(run.status)} (elapsed: {format_elapsed(elapsed)})",
                    extra={"run_id": run_id, "status": run.status},
                )

            state.poll_interval = next_poll_interval(
                run.status,
                current=state.poll_interval,
                wait_interval=self._wait_interval,
            )
