# === NAVMAP v1 ===
# {
#   "module": "SetupYarn.Action.logging_utils",
#   "purpose": "Workflow-command logging, groups and PATH export",
#   "sections": [
#     {
#       "id": "mask-sensitive-data",
#       "name": "mask_sensitive_data",
#       "anchor": "function-mask-sensitive-data",
#       "kind": "function"
#     },
#     {
#       "id": "workflowcommandformatter",
#       "name": "WorkflowCommandFormatter",
#       "anchor": "class-workflowcommandformatter",
#       "kind": "class"
#     },
#     {
#       "id": "jsonformatter",
#       "name": "JSONFormatter",
#       "anchor": "class-jsonformatter",
#       "kind": "class"
#     },
#     {
#       "id": "setup-logging",
#       "name": "setup_logging",
#       "anchor": "function-setup-logging",
#       "kind": "function"
#     },
#     {
#       "id": "log-group",
#       "name": "log_group",
#       "anchor": "function-log-group",
#       "kind": "function"
#     },
#     {
#       "id": "add-path",
#       "name": "add_path",
#       "anchor": "function-add-path",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Workflow-command logging for the CI runner.

The runner parses specially prefixed stdout lines: ``::warning::`` and
``::error::`` annotate the job, ``::group::``/``::endgroup::`` fold output.
:class:`WorkflowCommandFormatter` maps log levels onto those prefixes so the
rest of the package can use plain :mod:`logging`.  An optional JSON-lines
sidecar (``SETUP_YARN_LOG_JSON``) keeps a machine-readable copy of the run.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, Optional, TextIO

from .errors import ActionError

LOGGER_NAME = "SetupYarn"

_LEVEL_COMMANDS = {
    logging.DEBUG: "debug",
    logging.WARNING: "warning",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}

__all__ = [
    "LOGGER_NAME",
    "JSONFormatter",
    "WorkflowCommandFormatter",
    "add_path",
    "get_logger",
    "log_group",
    "mask_sensitive_data",
    "setup_logging",
]


def mask_sensitive_data(payload: Dict[str, object]) -> Dict[str, object]:
    """Remove secrets from structured payloads prior to logging.

    Examples:
        >>> mask_sensitive_data({"token": "secret", "status": "ok"})
        {'token': '***masked***', 'status': 'ok'}
    """
    sensitive_keys = {"authorization", "token", "runtime_token", "secret", "password"}
    masked: Dict[str, object] = {}
    for key, value in payload.items():
        if key.lower() in sensitive_keys:
            masked[key] = "***masked***"
        elif isinstance(value, str) and value.lower().startswith("bearer "):
            masked[key] = "***masked***"
        else:
            masked[key] = value
    return masked


class WorkflowCommandFormatter(logging.Formatter):
    """Render records as runner workflow commands.

    Examples:
        >>> formatter = WorkflowCommandFormatter()
        >>> formatter.format(logging.makeLogRecord({"msg": "careful", "levelno": logging.WARNING}))
        '::warning::careful'
    """

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        command = _LEVEL_COMMANDS.get(record.levelno)
        if command is None:
            return message
        return f"::{command}::{message}"


class JSONFormatter(logging.Formatter):
    """Formatter emitting masked JSON log entries."""

    _RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, object] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in self._RESERVED and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(payload), default=str)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAME}.{name}" if name else LOGGER_NAME)


def setup_logging(
    *,
    level: str = "INFO",
    stream: Optional[TextIO] = None,
    json_path: Optional[Path] = None,
) -> logging.Logger:
    """Configure the package logger to emit workflow commands.

    Args:
        level: Logging level name; unknown names fall back to ``INFO``.
        stream: Output stream (defaults to ``sys.stdout``, which the runner reads).
        json_path: Optional JSON-lines sidecar; ``SETUP_YARN_LOG_JSON`` is used
            when omitted.

    Returns:
        The configured ``SetupYarn`` logger.
    """

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_setup_yarn_managed", False):
            logger.removeHandler(handler)
            if isinstance(handler, logging.FileHandler):
                handler.close()

    stream_handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    stream_handler.setFormatter(WorkflowCommandFormatter("%(message)s"))
    stream_handler._setup_yarn_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    if json_path is None:
        env_value = os.environ.get("SETUP_YARN_LOG_JSON", "").strip()
        json_path = Path(env_value) if env_value else None
    if json_path is not None:
        json_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(json_path, encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler._setup_yarn_managed = True  # type: ignore[attr-defined]
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


@contextmanager
def log_group(name: str, logger: Optional[logging.Logger] = None) -> Iterator[None]:
    """Fold everything logged inside the block under a collapsible group."""

    target = logger if logger is not None else get_logger()
    target.info("::group::%s", name)
    try:
        yield
    finally:
        target.info("::endgroup::")


def add_path(path: os.PathLike | str) -> None:
    """Prepend ``path`` to ``PATH`` for this process and for later job steps."""

    entry = os.fspath(path)
    current = os.environ.get("PATH")
    os.environ["PATH"] = f"{entry}{os.pathsep}{current}" if current is not None else entry

    github_path = os.environ.get("GITHUB_PATH")
    if not github_path:
        raise ActionError("GITHUB_PATH environment variable is not set")
    with open(github_path, "a", encoding="utf-8") as handle:
        handle.write(f"{entry}{os.linesep}")
