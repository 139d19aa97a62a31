"""Find the run that a workflow dispatch produced.

The dispatch endpoint returns no run id, so after dispatching we poll the workflow's recent
`workflow_dispatch` runs until one matches. Two matching modes:

- correlation: the dispatch inputs carried a distinct id and the target workflow echoes it in
  its run-name. Only a run whose display title contains the id is accepted. There is no
  fallback to time-based matching: a workflow that does not echo the id ends in a timeout.
- time-based: the first run (in the order GitHub returned them) created at or after the
  dispatch time is accepted. Concurrent dispatches to the same workflow/ref can race here.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from datetime import datetime
from enum import Enum

from github_workflow_dispatch.dispatcher.errors import RunResolveTimeout
from github_workflow_dispatch.dispatcher.github.client import (
    TRANSIENT_ERRORS,
    WorkflowClient,
    WorkflowRun,
)
from github_workflow_dispatch.dispatcher.progress import Throttle, format_elapsed

logger = logging.getLogger(__name__)

MAX_RETRY_INTERVAL_SECONDS = 60.0
REPORT_INTERVAL_SECONDS = 10.0
RUNS_PAGE_SIZE = 10


class ResolverState(str, Enum):
    SEARCHING = "searching"
    FOUND = "found"
    TIMED_OUT = "timed_out"


def select_run(
    runs: Sequence[WorkflowRun],
    *,
    dispatched_at: datetime,
    distinct_id: str | None,
) -> WorkflowRun | None:
    """Return the run that matches this dispatch, if any.

    Timestamps are compared at whole-second granularity.
    """

    threshold = int(dispatched_at.timestamp())
    for run in runs:
        if run.created_at is None:
            continue
        if int(run.created_at.timestamp()) < threshold:
            continue
        if distinct_id:
            if distinct_id in run.display_title:
                return run
            continue
        return run
    return None


class RunResolver:
    """Poll for the dispatched run with exponential backoff until found or timed out."""

    def __init__(
        self,
        client: WorkflowClient,
        *,
        workflow_file: str,
        ref: str,
        wait_interval: float,
        trigger_timeout: float,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if wait_interval <= 0:
            raise ValueError("wait_interval must be > 0")
        if trigger_timeout <= 0:
            raise ValueError("trigger_timeout must be > 0")

        self._client = client
        self._workflow_file = workflow_file
        self._ref = ref
        self._wait_interval = wait_interval
        self._trigger_timeout = trigger_timeout
        self._sleep = sleep
        self._clock = clock
        self.state = ResolverState.SEARCHING
        self.run_id: int | None = None

    def resolve(self, *, dispatched_at: datetime, distinct_id: str | None = None) -> int:
        """Block until the dispatched run is visible and return its id.

        Raises:
            RunResolveTimeout: no matching run within `trigger_timeout` seconds.
        """

        if self.run_id is not None:
            return self.run_id

        started = self._clock()
        deadline = started + self._trigger_timeout
        interval = self._wait_interval
        progress = Throttle(min_interval=REPORT_INTERVAL_SECONDS, clock=self._clock)
        error_report = Throttle(min_interval=REPORT_INTERVAL_SECONDS, clock=self._clock)
        self.state = ResolverState.SEARCHING

        while True:
            self._sleep(interval)

            runs: list[WorkflowRun] = []
            try:
                runs = self._client.list_dispatch_runs(
                    workflow_file=self._workflow_file,
                    ref=self._ref,
                    per_page=RUNS_PAGE_SIZE,
                )
            except TRANSIENT_ERRORS as e:
                if error_report():
                    logger.warning("Error checking runs (retrying...)", extra={"error": str(e)})

            match = select_run(runs, dispatched_at=dispatched_at, distinct_id=distinct_id)
            if match is not None:
                self.state = ResolverState.FOUND
                self.run_id = match.id
                logger.info("Triggered run found", extra={"run_id": match.id})
                return match.id

            if progress():
                logger.info(
                    f"Finding run... {format_elapsed(self._clock() - started)}",
                    extra={"candidates": len(runs)},
                )

            interval = min(interval * 2, MAX_RETRY_INTERVAL_SECONDS)

            if self._clock() >= deadline:
                self.state = ResolverState.TIMED_OUT
                logger.error(
                    "Timed out waiting for the dispatched run to appear",
                    extra={
                        "timeout_seconds": self._trigger_timeout,
                        "distinct_id": distinct_id or "",
                    },
                )
                raise RunResolveTimeout(self._trigger_timeout)
