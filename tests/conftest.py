"""Test configuration and fixtures."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from github_workflow_dispatch.dispatcher.config import DispatchSettings


class FakeClock:
    """Monotonic clock whose `sleep` advances time instantly and records each call."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Run every test without inherited action inputs or a stray `.env`."""

    for key in list(os.environ):
        if key.startswith(("INPUT_", "GITHUB_")) or key in {"LOG_LEVEL", "LOG_FORMAT"}:
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    yield


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_settings() -> Callable[..., DispatchSettings]:
    """Build settings from keyword overrides on top of a valid minimal configuration."""

    def _make(**overrides: Any) -> DispatchSettings:
        values: dict[str, Any] = {
            "owner": "octo-org",
            "repo": "octo-repo",
            "github_token": "test-token",
            "workflow_file_name": "deploy.yml",
        }
        values.update(overrides)
        return DispatchSettings(**values)

    return _make
