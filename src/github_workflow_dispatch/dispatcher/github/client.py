"""GitHub Actions REST client.

Covers the three calls a dispatch needs: start a workflow, list its recent dispatch runs and
read one run. Everything goes through a single `requests.Session` so tests can inject a fake.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import requests

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 30


@dataclass(frozen=True, slots=True)
class WorkflowRun:
    """A workflow run as observed by a single poll. Never cached across polls."""

    id: int
    status: str
    conclusion: str
    created_at: datetime | None
    display_title: str


class GitHubAPIError(RuntimeError):
    """Raised for any non-2xx response from the GitHub API."""

    def __init__(self, *, status_code: int, reason: str, body: str, url: str) -> None:
        self.status_code = status_code
        self.reason = reason
        self.body = body
        self.url = url
        super().__init__(f"API request failed: {status_code} {reason}. Response: {body}")


# Failures a polling loop may retry on its next tick: network errors and timeouts, non-2xx
# responses, and bodies that do not parse.
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    requests.RequestException,
    GitHubAPIError,
    ValueError,
)


class WorkflowClient:
    """Small wrapper around the Actions REST endpoints for one repository."""

    def __init__(
        self,
        *,
        token: str,
        owner: str,
        repo: str,
        api_url: str = "https://api.github.com",
        server_url: str = "https://github.com",
        session: requests.Session | None = None,
    ) -> None:
        if not token:
            raise ValueError("GitHub token is required")
        if not owner.strip() or not repo.strip():
            raise ValueError("GitHub owner and repo are required")

        self._owner = owner.strip().strip("/")
        self._repo = repo.strip().strip("/")
        self._api_url = api_url.rstrip("/")
        self._server_url = server_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "github-workflow-dispatch",
            }
        )

    def _actions_url(self, path: str) -> str:
        path = path.lstrip("/")
        return f"{self._api_url}/repos/{self._owner}/{self._repo}/actions/{path}"

    def run_html_url(self, run_id: int) -> str:
        return f"{self._server_url}/{self._owner}/{self._repo}/actions/runs/{run_id}"

    @staticmethod
    def _check_response(resp: requests.Response) -> None:
        # 204 No Content is the usual dispatch response.
        if 200 <= resp.status_code < 300:
            return
        raise GitHubAPIError(
            status_code=resp.status_code,
            reason=resp.reason or "",
            body=resp.text,
            url=resp.url,
        )

    @staticmethod
    def _parse_datetime(value: object) -> datetime:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("Invalid datetime value")
        # GitHub returns timestamps like "2025-01-01T00:00:00Z".
        iso = value.replace("Z", "+00:00")
        return datetime.fromisoformat(iso)

    @classmethod
    def _parse_run_json(cls, data: dict[str, Any]) -> WorkflowRun:
        run_id = data.get("id")
        if not isinstance(run_id, int) or isinstance(run_id, bool) or run_id <= 0:
            raise ValueError("Invalid workflow run response: missing id")

        status = data.get("status")
        if not isinstance(status, str):
            status = ""

        conclusion = data.get("conclusion")
        if not isinstance(conclusion, str):
            conclusion = ""

        display_title = data.get("display_title")
        if not isinstance(display_title, str):
            display_title = ""

        try:
            created_at: datetime | None = cls._parse_datetime(data.get("created_at"))
        except ValueError:
            created_at = None

        return WorkflowRun(
            id=run_id,
            status=status,
            conclusion=conclusion,
            created_at=created_at,
            display_title=display_title,
        )

    def dispatch_workflow(
        self,
        *,
        workflow_file: str,
        ref: str,
        inputs: dict[str, Any],
    ) -> None:
        """Ask GitHub to start `workflow_file` on `ref`.

        The call is not retried: a second dispatch would start a second run.

        Raises:
            GitHubAPIError: for any non-2xx response.
        """

        if not workflow_file.strip():
            raise ValueError("workflow_file is required")
        if not ref.strip():
            raise ValueError("ref is required")

        url = self._actions_url(f"workflows/{workflow_file}/dispatches")
        payload = {"ref": ref, "inputs": inputs}
        resp = self._session.post(url, json=payload, timeout=REQUEST_TIMEOUT_SECONDS)
        self._check_response(resp)
        logger.debug(
            "Workflow dispatch accepted",
            extra={"workflow": workflow_file, "ref": ref, "status_code": resp.status_code},
        )

    def list_dispatch_runs(
        self,
        *,
        workflow_file: str,
        ref: str,
        per_page: int = 10,
    ) -> list[WorkflowRun]:
        """Return the most recent `workflow_dispatch` runs on `ref`, newest first.

        Order is whatever GitHub returned; callers rely on it.
        """

        url = self._actions_url(f"workflows/{workflow_file}/runs")
        params: dict[str, str | int] = {
            "event": "workflow_dispatch",
            "branch": ref,
            "per_page": per_page,
        }
        resp = self._session.get(url, params=params, timeout=REQUEST_TIMEOUT_SECONDS)
        self._check_response(resp)
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError("Unexpected workflow runs response: expected an object")

        raw_runs = data.get("workflow_runs")
        if not isinstance(raw_runs, list):
            return []

        runs: list[WorkflowRun] = []
        for item in raw_runs:
            if not isinstance(item, dict):
                continue
            try:
                runs.append(self._parse_run_json(item))
            except ValueError:
                continue
        return runs

    def get_run(self, run_id: int) -> WorkflowRun:
        """Fetch the current state of a single run."""

        if run_id <= 0:
            raise ValueError("run_id must be a positive integer")
        url = self._actions_url(f"runs/{run_id}")
        resp = self._session.get(url, timeout=REQUEST_TIMEOUT_SECONDS)
        self._check_response(resp)
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError("Unexpected workflow run response: expected an object")
        return self._parse_run_json(data)

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> WorkflowClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
