"""
Error taxonomy for wormhole transfers.

All failures are resolved at the session boundary and surfaced once to the
caller. Cancellation is not a ``TransferError``; it is reported through its own
acknowledgment channel.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class TransferError(Exception):
    """Base exception class for all transfer failures."""
    pass


class ExecutableNotFound(TransferError):
    """Raised when the wormhole executable is absent at the expected path."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        super().__init__(f"Wormhole binary not found at: {self.path}")


class SpawnError(TransferError):
    """Raised when the operating system could not start the process."""
    pass


class ProcessRuntimeError(TransferError):
    """Raised when the live process handle fails before a clean exit."""
    pass


class NonZeroExit(TransferError):
    """Raised when the process completed but signaled failure."""

    def __init__(self, exit_code: Optional[int], message: str):
        self.exit_code = exit_code
        super().__init__(message)


class TransferCancelled(Exception):
    """Raised to a caller awaiting a session that was cancelled."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Transfer {session_id} was cancelled")


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""
    pass
