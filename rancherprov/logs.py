"""Loggers that carry per-tool-call context fields."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, MutableMapping

BASE_LOGGER_NAME = "rancherprov"


class _FieldsAdapter(logging.LoggerAdapter):
    """Attach a ``fields`` mapping to every record it emits."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        call_extra = dict(kwargs.get("extra") or {})
        fields = dict(self.extra["fields"])
        fields.update(call_extra.pop("fields", {}) or {})
        call_extra["fields"] = fields
        kwargs["extra"] = call_extra
        return msg, kwargs


def child_logger(
    tool_name: str,
    session_id: str | None = None,
    extras: Mapping[str, str] | None = None,
) -> logging.LoggerAdapter:
    """Return a logger whose records carry the tool name, session id and extras."""
    fields: dict[str, str] = {"tool-name": tool_name}
    if session_id:
        fields["mcp-request-id"] = session_id
    fields.update(extras or {})
    return _FieldsAdapter(logging.getLogger(BASE_LOGGER_NAME), {"fields": fields})