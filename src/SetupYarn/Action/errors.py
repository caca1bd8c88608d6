"""Errors raised by the CI glue around the artifact cache."""

from __future__ import annotations

from typing import Optional, Sequence

__all__ = ["ActionError", "CommandError"]


class ActionError(RuntimeError):
    """Raised when an action step cannot complete."""


class CommandError(ActionError):
    """Raised when a spawned command cannot start or exits non-zero."""

    def __init__(
        self,
        command: Sequence[str],
        *,
        exit_code: Optional[int] = None,
        stderr: str = "",
    ) -> None:
        self.command = tuple(command)
        self.exit_code = exit_code
        self.stderr = stderr
        detail = f" failed with exit code {exit_code}" if exit_code is not None else " failed to start"
        message = f"The process '{' '.join(self.command)}'{detail}"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)
