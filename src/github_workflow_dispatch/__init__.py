"""GitHub Workflow Dispatch.

Triggers a GitHub Actions workflow through `workflow_dispatch`, works out which run the
dispatch started and waits for that run to finish:
- configuration loaded from action inputs (`INPUT_*`) or `.env`
- correlation by distinct id in the run-name, or by dispatch time
- adaptive polling and step outputs via `GITHUB_OUTPUT`
"""

__version__ = "0.1.0"

from github_workflow_dispatch.dispatcher.config import DispatchSettings

__all__ = ["__version__", "DispatchSettings"]
