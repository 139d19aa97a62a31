"""Configuration for a single dispatch invocation.

Configuration is loaded from:
- the `INPUT_*` environment variables GitHub Actions sets for action inputs
- the standard `GITHUB_*` runner variables (API/server URLs, output file)
- and a local `.env` file (if present)

Empty variables count as unset, so an action input left blank falls back to its default.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DispatchSettings(BaseSettings):
    """Settings for triggering and waiting on one workflow run.

    Environment variables:
    - INPUT_OWNER, INPUT_REPO, INPUT_GITHUB_TOKEN, INPUT_WORKFLOW_FILE_NAME (required)
    - INPUT_REF, INPUT_CLIENT_PAYLOAD, INPUT_WAIT_INTERVAL, INPUT_TRIGGER_TIMEOUT
    - INPUT_PROPAGATE_FAILURE, INPUT_TRIGGER_WORKFLOW, INPUT_WAIT_WORKFLOW
    - INPUT_DISTINCT_ID_NAME, INPUT_RUN_ID
    - GITHUB_API_URL, GITHUB_SERVER_URL, GITHUB_OUTPUT
    - LOG_LEVEL, LOG_FORMAT

    Notes:
        Tests can skip the environment entirely by passing field names, e.g.
        `DispatchSettings(owner="o", repo="r", github_token="t", workflow_file_name="ci.yml")`.
    """

    owner: str = Field(default="", validation_alias="INPUT_OWNER")
    repo: str = Field(default="", validation_alias="INPUT_REPO")
    github_token: str = Field(
        default="",
        validation_alias="INPUT_GITHUB_TOKEN",
        description="Token used for API authentication; needs actions:write on the target repo",
    )
    workflow_file_name: str = Field(
        default="",
        validation_alias="INPUT_WORKFLOW_FILE_NAME",
        description="Workflow file name (e.g. 'deploy.yml') or numeric workflow id",
    )
    ref: str = Field(default="main", validation_alias="INPUT_REF")

    client_payload_json: str = Field(
        default="",
        validation_alias="INPUT_CLIENT_PAYLOAD",
        description="JSON object passed as workflow_dispatch inputs",
    )

    wait_interval: float = Field(
        default=10.0,
        gt=0,
        validation_alias="INPUT_WAIT_INTERVAL",
        description="Base polling interval (seconds)",
    )
    trigger_timeout: float = Field(
        default=120.0,
        gt=0,
        validation_alias="INPUT_TRIGGER_TIMEOUT",
        description="How long to look for the dispatched run before giving up (seconds)",
    )

    propagate_failure: bool = Field(default=True, validation_alias="INPUT_PROPAGATE_FAILURE")
    trigger_workflow: bool = Field(default=True, validation_alias="INPUT_TRIGGER_WORKFLOW")
    wait_workflow: bool = Field(default=True, validation_alias="INPUT_WAIT_WORKFLOW")

    distinct_id_name: str = Field(
        default="",
        validation_alias="INPUT_DISTINCT_ID_NAME",
        description=(
            "Input name under which a correlation token is injected. The target workflow must "
            "echo the token in its run-name; leave empty for time-based matching."
        ),
    )
    run_id: int | None = Field(
        default=None,
        gt=0,
        validation_alias="INPUT_RUN_ID",
        description="Known run to wait on when INPUT_TRIGGER_WORKFLOW is false",
    )

    github_api_url: str = Field(
        default="https://api.github.com",
        validation_alias="GITHUB_API_URL",
        description="GitHub API base URL (useful for GitHub Enterprise)",
    )
    github_server_url: str = Field(
        default="https://github.com",
        validation_alias="GITHUB_SERVER_URL",
        description="GitHub web base URL used to build run links",
    )
    github_output: Path | None = Field(
        default=None,
        validation_alias="GITHUB_OUTPUT",
        description="File that step outputs are appended to",
    )

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: Literal["text", "json"] = Field(default="text", validation_alias="LOG_FORMAT")

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("propagate_failure", "trigger_workflow", "wait_workflow", mode="before")
    @classmethod
    def _parse_flag(cls, value: object) -> object:
        # Anything other than "true" is false, matching how action inputs are usually read.
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return value

    @field_validator("client_payload_json")
    @classmethod
    def _validate_client_payload(cls, value: str) -> str:
        if not value.strip():
            return ""
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"invalid client_payload JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise ValueError("invalid client_payload JSON: expected an object")
        return value

    @model_validator(mode="after")
    def _require_target(self) -> DispatchSettings:
        if not self.owner.strip():
            raise ValueError("owner is a required argument")
        if not self.repo.strip():
            raise ValueError("repo is a required argument")
        if not self.github_token.strip():
            raise ValueError("github_token is required")
        if not self.workflow_file_name.strip():
            raise ValueError("workflow_file_name is required")
        return self

    @property
    def client_payload(self) -> dict[str, Any]:
        """The raw (unsanitized) client payload as a dict."""

        if not self.client_payload_json.strip():
            return {}
        payload: dict[str, Any] = json.loads(self.client_payload_json)
        return payload

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"
