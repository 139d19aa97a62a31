"""Dispatch, resolve and track one workflow run.

Phases run strictly in order and any fatal error aborts the ones after it:
1. dispatch the workflow and resolve the resulting run id (or take a known run id)
2. publish `workflow_id` / `workflow_url`
3. wait for completion and publish `conclusion`
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

import requests

from github_workflow_dispatch.dispatcher.config import DispatchSettings
from github_workflow_dispatch.dispatcher.errors import WorkflowDispatchError, WorkflowRunFailed
from github_workflow_dispatch.dispatcher.github.client import GitHubAPIError, WorkflowClient
from github_workflow_dispatch.dispatcher.outputs import ActionOutputs
from github_workflow_dispatch.dispatcher.payload import TriggerRequest
from github_workflow_dispatch.dispatcher.resolver import RunResolver
from github_workflow_dispatch.dispatcher.tracker import CompletionTracker

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """What one invocation produced. `run_id` is None when nothing was triggered."""

    run_id: int | None
    run_url: str | None
    conclusion: str | None
    distinct_id: str | None


class WorkflowDispatchService:
    def __init__(
        self,
        *,
        settings: DispatchSettings,
        client: WorkflowClient,
        outputs: ActionOutputs,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings
        self._client = client
        self._outputs = outputs
        self._sleep = sleep
        self._clock = clock
        self._now = now

    def trigger(self, request: TriggerRequest) -> int:
        """Dispatch the workflow and return the id of the run it started."""

        settings = self._settings
        dispatched_at = self._now()

        logger.info(
            f"Triggering {settings.repository} → {settings.workflow_file_name} @ {request.ref}",
            extra={"distinct_id": request.distinct_id or "", "inputs": request.inputs},
        )
        if request.distinct_id:
            self._outputs.set("distinct_id", request.distinct_id)

        try:
            self._client.dispatch_workflow(
                workflow_file=settings.workflow_file_name,
                ref=request.ref,
                inputs=request.inputs,
            )
        except (GitHubAPIError, requests.RequestException) as e:
            raise WorkflowDispatchError(f"failed to trigger workflow: {e}") from e

        resolver = RunResolver(
            self._client,
            workflow_file=settings.workflow_file_name,
            ref=request.ref,
            wait_interval=settings.wait_interval,
            trigger_timeout=settings.trigger_timeout,
            sleep=self._sleep,
            clock=self._clock,
        )
        return resolver.resolve(dispatched_at=dispatched_at, distinct_id=request.distinct_id)

    def wait(self, run_id: int) -> str:
        """Track `run_id` to completion and return its conclusion."""

        tracker = CompletionTracker(
            self._client,
            wait_interval=self._settings.wait_interval,
            propagate_failure=self._settings.propagate_failure,
            sleep=self._sleep,
            clock=self._clock,
        )
        logger.info("Waiting for workflow completion...", extra={"run_id": run_id})
        try:
            tracked = tracker.wait(run_id)
        except WorkflowRunFailed as e:
            self._outputs.set("conclusion", e.conclusion)
            raise
        self._outputs.set("conclusion", tracked.conclusion)
        return tracked.conclusion

    def execute(self, request: TriggerRequest) -> DispatchResult:
        settings = self._settings

        run_id: int | None
        distinct_id: str | None = None
        if settings.trigger_workflow:
            run_id = self.trigger(request)
            distinct_id = request.distinct_id
        else:
            run_id = settings.run_id
            logger.info("Skipping workflow trigger", extra={"run_id": run_id or ""})

        if run_id is None:
            return DispatchResult(
                run_id=None,
                run_url=None,
                conclusion=None,
                distinct_id=distinct_id,
            )

        run_url = self._client.run_html_url(run_id)
        self._outputs.set("workflow_id", run_id)
        self._outputs.set("workflow_url", run_url)

        if not settings.wait_workflow:
            logger.info("Skipping wait (workflow started)", extra={"url": run_url})
            return DispatchResult(
                run_id=run_id,
                run_url=run_url,
                conclusion=None,
                distinct_id=distinct_id,
            )

        logger.info(f"URL: {run_url}")
        conclusion = self.wait(run_id)
        return DispatchResult(
            run_id=run_id,
            run_url=run_url,
            conclusion=conclusion,
            distinct_id=distinct_id,
        )
