"""Console script entrypoint.

The implementation lives in `github_workflow_dispatch.dispatcher.main`.
"""

from __future__ import annotations

from github_workflow_dispatch.dispatcher.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())
