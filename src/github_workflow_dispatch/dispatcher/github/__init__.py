"""GitHub REST access used by the dispatcher."""

from github_workflow_dispatch.dispatcher.github.client import (
    TRANSIENT_ERRORS,
    GitHubAPIError,
    WorkflowClient,
    WorkflowRun,
)

__all__ = ["TRANSIENT_ERRORS", "GitHubAPIError", "WorkflowClient", "WorkflowRun"]
