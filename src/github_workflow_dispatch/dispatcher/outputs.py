"""Step outputs written to the file named by `GITHUB_OUTPUT`."""

from __future__ import annotations

import logging
import secrets
from pathlib import Path

logger = logging.getLogger(__name__)


class ActionOutputs:
    """Append `name=value` lines to the Actions output file.

    Every value is also kept in `values` so callers and tests can read back what was emitted.
    Without a path nothing is written to disk.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self.values: dict[str, str] = {}

    @property
    def path(self) -> Path | None:
        return self._path

    def set(self, name: str, value: object) -> None:  # noqa: A003 (set)
        if not name.strip() or "=" in name or "\n" in name:
            raise ValueError(f"Invalid output name: {name!r}")

        text = "" if value is None else str(value)
        self.values[name] = text

        if self._path is None:
            logger.debug("GITHUB_OUTPUT not set; output kept in memory", extra={"output": name})
            return

        if "\n" in text:
            delimiter = f"ghadelim_{secrets.token_hex(8)}"
            line = f"{name}<<{delimiter}\n{text}\n{delimiter}\n"
        else:
            line = f"{name}={text}\n"

        with self._path.open("a", encoding="utf-8") as f:
            f.write(line)
