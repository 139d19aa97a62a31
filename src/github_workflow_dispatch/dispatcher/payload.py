"""Dispatch input shaping.

- strip empty values from the client payload before it is sent
- generate the short correlation token ("distinct id") used to find the resulting run
"""

from __future__ import annotations

import secrets
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from github_workflow_dispatch.dispatcher.config import DispatchSettings

DISTINCT_ID_LENGTH = 8


def sanitize_payload(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of `payload` without null or empty-string values.

    Nested mappings are cleaned first and dropped when nothing is left in them.
    `False` and `0` are real values and are kept.
    """

    cleaned: dict[str, Any] = {}
    for key, value in payload.items():
        if value is None:
            continue
        if isinstance(value, str) and value == "":
            continue
        if isinstance(value, Mapping):
            nested = sanitize_payload(value)
            if nested:
                cleaned[key] = nested
            continue
        cleaned[key] = value
    return cleaned


def generate_distinct_id() -> str:
    """Return a fresh 8 character uppercase hex token.

    Used for correlation only, not as a secret.
    """

    return secrets.token_hex(DISTINCT_ID_LENGTH // 2).upper()


@dataclass(frozen=True, slots=True)
class TriggerRequest:
    """What gets sent to the dispatch endpoint. Built once per invocation."""

    ref: str
    inputs: dict[str, Any] = field(default_factory=dict)
    distinct_id: str | None = None


def build_trigger_request(
    settings: DispatchSettings,
    *,
    token_factory: Callable[[], str] = generate_distinct_id,
) -> TriggerRequest:
    inputs = sanitize_payload(settings.client_payload)

    distinct_id: str | None = None
    if settings.distinct_id_name:
        distinct_id = token_factory()
        inputs[settings.distinct_id_name] = distinct_id

    return TriggerRequest(ref=settings.ref, inputs=inputs, distinct_id=distinct_id)
