"""Unit tests for finding the run a dispatch started."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from unittest.mock import Mock

import pytest
import requests

from github_workflow_dispatch.dispatcher.errors import RunResolveTimeout
from github_workflow_dispatch.dispatcher.github.client import (
    GitHubAPIError,
    WorkflowClient,
    WorkflowRun,
)
from github_workflow_dispatch.dispatcher.resolver import ResolverState, RunResolver, select_run
from tests.conftest import FakeClock

DISPATCHED_AT = datetime(2025, 6, 1, 12, 0, 0, 400000, tzinfo=UTC)
DISTINCT_ID = "ABCD1234"


def _run(run_id: int, offset: timedelta, title: str = "Deploy") -> WorkflowRun:
    return WorkflowRun(
        id=run_id,
        status="queued",
        conclusion="",
        created_at=DISPATCHED_AT + offset,
        display_title=title,
    )


def _resolver(client: Mock, clock: FakeClock, **kwargs: float) -> RunResolver:
    return RunResolver(
        client,
        workflow_file="deploy.yml",
        ref="main",
        wait_interval=kwargs.get("wait_interval", 10),
        trigger_timeout=kwargs.get("trigger_timeout", 120),
        sleep=clock.sleep,
        clock=clock,
    )


def test_select_run_correlation_picks_title_match_only() -> None:
    runs = [
        _run(12346, timedelta(seconds=2), "Deploy production"),
        _run(12345, timedelta(seconds=1), f"Deploy [{DISTINCT_ID}]"),
        _run(12344, timedelta(hours=-1), f"Deploy [{DISTINCT_ID}]"),
    ]

    match = select_run(runs, dispatched_at=DISPATCHED_AT, distinct_id=DISTINCT_ID)

    assert match is not None
    assert match.id == 12345


def test_select_run_correlation_never_falls_back_to_time() -> None:
    runs = [
        _run(12346, timedelta(seconds=2)),
        _run(12345, timedelta(seconds=1)),
        _run(12344, timedelta(hours=-1)),
    ]

    assert select_run(runs, dispatched_at=DISPATCHED_AT, distinct_id=DISTINCT_ID) is None


def test_select_run_time_based_takes_first_in_returned_order() -> None:
    runs = [
        _run(12346, timedelta(seconds=2)),
        _run(12345, timedelta(seconds=1)),
        _run(12344, timedelta(hours=-1)),
    ]

    match = select_run(runs, dispatched_at=DISPATCHED_AT, distinct_id=None)

    assert match is not None
    assert match.id == 12346


def test_select_run_compares_at_second_granularity() -> None:
    # Created 0.3s before the dispatch timestamp but within the same second.
    same_second = _run(1, timedelta(milliseconds=-300))
    previous_second = _run(2, timedelta(seconds=-1))

    assert select_run([previous_second], dispatched_at=DISPATCHED_AT, distinct_id=None) is None
    match = select_run(
        [previous_second, same_second], dispatched_at=DISPATCHED_AT, distinct_id=None
    )
    assert match is same_second


def test_select_run_skips_runs_without_timestamp() -> None:
    undated = WorkflowRun(
        id=9, status="queued", conclusion="", created_at=None, display_title=DISTINCT_ID
    )

    assert select_run([undated], dispatched_at=DISPATCHED_AT, distinct_id=DISTINCT_ID) is None


def test_resolve_returns_correlated_run(fake_clock: FakeClock) -> None:
    client = Mock(spec=WorkflowClient)
    client.list_dispatch_runs.side_effect = [
        [],
        [
            _run(12346, timedelta(seconds=2)),
            _run(12345, timedelta(seconds=1), f"Deploy [{DISTINCT_ID}]"),
            _run(12344, timedelta(hours=-1)),
        ],
    ]
    resolver = _resolver(client, fake_clock)

    run_id = resolver.resolve(dispatched_at=DISPATCHED_AT, distinct_id=DISTINCT_ID)

    assert run_id == 12345
    assert resolver.state == ResolverState.FOUND
    assert fake_clock.sleeps == [10, 20]
    client.list_dispatch_runs.assert_called_with(
        workflow_file="deploy.yml", ref="main", per_page=10
    )


def test_resolve_times_out_when_title_never_matches(fake_clock: FakeClock) -> None:
    client = Mock(spec=WorkflowClient)
    client.list_dispatch_runs.return_value = [
        _run(12346, timedelta(seconds=2)),
        _run(12345, timedelta(seconds=1)),
        _run(12344, timedelta(hours=-1)),
    ]
    resolver = _resolver(client, fake_clock)

    with pytest.raises(RunResolveTimeout, match="120s"):
        resolver.resolve(dispatched_at=DISPATCHED_AT, distinct_id=DISTINCT_ID)

    assert resolver.state == ResolverState.TIMED_OUT
    assert resolver.run_id is None
    # 10 + 20 + 40 + 60 crosses the 120s deadline.
    assert fake_clock.sleeps == [10, 20, 40, 60]
    assert client.list_dispatch_runs.call_count == 4


def test_resolve_time_based_returns_first_qualifying(fake_clock: FakeClock) -> None:
    client = Mock(spec=WorkflowClient)
    client.list_dispatch_runs.return_value = [
        _run(12346, timedelta(seconds=2)),
        _run(12345, timedelta(seconds=1)),
        _run(12344, timedelta(hours=-1)),
    ]
    resolver = _resolver(client, fake_clock)

    assert resolver.resolve(dispatched_at=DISPATCHED_AT) == 12346
    assert fake_clock.sleeps == [10]


def test_resolve_backoff_is_capped(fake_clock: FakeClock) -> None:
    client = Mock(spec=WorkflowClient)
    client.list_dispatch_runs.return_value = []
    resolver = _resolver(client, fake_clock, wait_interval=15, trigger_timeout=300)

    with pytest.raises(RunResolveTimeout):
        resolver.resolve(dispatched_at=DISPATCHED_AT)

    assert fake_clock.sleeps == [15, 30, 60, 60, 60, 60, 60]


def test_resolve_swallows_transient_errors(fake_clock: FakeClock) -> None:
    client = Mock(spec=WorkflowClient)
    client.list_dispatch_runs.side_effect = [
        requests.ConnectionError("boom"),
        GitHubAPIError(status_code=500, reason="Server Error", body="", url="u"),
        ValueError("bad json"),
        [_run(777, timedelta(seconds=5))],
    ]
    resolver = _resolver(client, fake_clock, trigger_timeout=600)

    assert resolver.resolve(dispatched_at=DISPATCHED_AT) == 777
    assert fake_clock.sleeps == [10, 20, 40, 60]


def test_resolve_keeps_committed_run_id(fake_clock: FakeClock) -> None:
    client = Mock(spec=WorkflowClient)
    client.list_dispatch_runs.side_effect = [
        [_run(1, timedelta(seconds=1))],
        [_run(2, timedelta(seconds=2))],
    ]
    resolver = _resolver(client, fake_clock)

    assert resolver.resolve(dispatched_at=DISPATCHED_AT) == 1
    assert resolver.resolve(dispatched_at=DISPATCHED_AT) == 1
    assert client.list_dispatch_runs.call_count == 1


def test_resolve_rate_limits_error_and_progress_logs(
    fake_clock: FakeClock, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.INFO, logger="github_workflow_dispatch.dispatcher.resolver")
    client = Mock(spec=WorkflowClient)
    client.list_dispatch_runs.side_effect = [requests.ConnectionError("reset")] * 4 + [
        [_run(777, timedelta(seconds=5))]
    ]
    resolver = _resolver(client, fake_clock, wait_interval=3, trigger_timeout=600)

    assert resolver.resolve(dispatched_at=DISPATCHED_AT) == 777

    # Polls at t=3, 9, 21, 45; only the last two are more than 10s after the previous report.
    assert fake_clock.sleeps == [3, 6, 12, 24, 48]
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    progress = [r for r in caplog.records if r.getMessage().startswith("Finding run...")]
    assert len(warnings) == 2
    assert len(progress) == 2
