"""CLI entrypoint: trigger a workflow, find its run, wait for it.

All inputs come from the environment (see `DispatchSettings`); the command line only offers
`--version`.
"""

from __future__ import annotations

import argparse
import logging
import sys

from pydantic import ValidationError

from github_workflow_dispatch import __version__
from github_workflow_dispatch.dispatcher.config import DispatchSettings
from github_workflow_dispatch.dispatcher.errors import DispatchError
from github_workflow_dispatch.dispatcher.github.client import WorkflowClient
from github_workflow_dispatch.dispatcher.logging import configure_logging
from github_workflow_dispatch.dispatcher.outputs import ActionOutputs
from github_workflow_dispatch.dispatcher.payload import build_trigger_request
from github_workflow_dispatch.dispatcher.service import WorkflowDispatchService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="github-workflow-dispatch",
        description=(
            "Trigger a GitHub Actions workflow via workflow_dispatch, identify the run it "
            "started and wait for it to finish. Configured through INPUT_* environment variables."
        ),
    )
    parser.add_argument(
        "--version", action="version", version=f"github-workflow-dispatch {__version__}"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    parser.parse_args(argv)

    try:
        settings = DispatchSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check the action inputs):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level, settings.log_format)

    request = build_trigger_request(settings)
    outputs = ActionOutputs(settings.github_output)

    with WorkflowClient(
        token=settings.github_token,
        owner=settings.owner,
        repo=settings.repo,
        api_url=settings.github_api_url,
        server_url=settings.github_server_url,
    ) as client:
        service = WorkflowDispatchService(settings=settings, client=client, outputs=outputs)
        try:
            service.execute(request)
        except DispatchError as e:
            logger.error(f"Error: {e}", extra={"error_type": type(e).__name__})
            return 1
        except Exception:
            logger.exception("Command failed")
            return 1

    return 0
