"""
Audit Logger

Writes one JSON line per tool call through the ``scp.audit`` logger, and
optionally appends the same lines to a dedicated file.

Arguments are truncated before logging so that large queries or payloads
never bloat the audit trail.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..config import settings

MAX_STRING_LENGTH = 200
MAX_LIST_ITEMS = 50


def truncate_for_log(value: Any, max_string_length: int = MAX_STRING_LENGTH) -> Any:
    if isinstance(value, str):
        if len(value) > max_string_length:
            return value[:max_string_length] + "…"
        return value
    if isinstance(value, (list, tuple)):
        return [truncate_for_log(v, max_string_length) for v in value[:MAX_LIST_ITEMS]]
    if isinstance(value, dict):
        return {k: truncate_for_log(v, max_string_length) for k, v in value.items()}
    return value


class AuditLogger:
    """
    Structured audit trail of tool calls.
    """

    def __init__(
        self,
        log_path: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """
        Parameters
        ----------
        log_path : Optional[str]
            File to append audit lines to. Defaults to
            settings.audit_log_path; when unset, lines only go to the
            ``scp.audit`` logger.
        """
        self._logger = logger or logging.getLogger("scp.audit")
        self._log_path = log_path if log_path is not None else settings.audit_log_path

        if self._log_path and not any(
            isinstance(h, logging.FileHandler)
            and h.baseFilename == os.path.abspath(self._log_path)
            for h in self._logger.handlers
        ):
            handler = logging.FileHandler(self._log_path, encoding="utf-8")
            handler.setFormatter(logging.Formatter("%(message)s"))
            self._logger.addHandler(handler)
            self._logger.setLevel(logging.INFO)

    def log(
        self,
        tool: str,
        args: Any,
        session_id: Optional[str] = None,
        result_meta: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Record one tool call and return the event that was written.
        """
        event: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "session_id": session_id,
            "tool": tool,
            "args": truncate_for_log(args),
        }
        if result_meta is not None:
            event["result_meta"] = result_meta
        if error is not None:
            event["error"] = error

        self._logger.info(json.dumps(event, ensure_ascii=False, default=str))
        return event

