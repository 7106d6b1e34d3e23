"""
Core transfer orchestration for the wormhole bridge.

Launches the external wormhole executable, turns its console output into
typed events and settles each transfer exactly once.

Exports:
- TransferOrchestrator: facade for send/receive of files and text
- TransferSession, TransferKind, TransferState, TransferResult
- TransferRegistry: live sessions keyed by id
- Settings / load_settings: configuration
- Error taxonomy
"""

from .config import Settings, load_settings
from .core import TransferOrchestrator
from .exceptions import (
    ConfigurationError,
    ExecutableNotFound,
    NonZeroExit,
    ProcessRuntimeError,
    SpawnError,
    TransferCancelled,
    TransferError,
)
from .registry import TransferRegistry
from .session import TransferKind, TransferResult, TransferSession, TransferState

__all__ = [
    "Settings",
    "load_settings",
    "TransferOrchestrator",
    "TransferRegistry",
    "TransferSession",
    "TransferKind",
    "TransferState",
    "TransferResult",
    "TransferError",
    "ExecutableNotFound",
    "SpawnError",
    "ProcessRuntimeError",
    "NonZeroExit",
    "TransferCancelled",
    "ConfigurationError",
]
