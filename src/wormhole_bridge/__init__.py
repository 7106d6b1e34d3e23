"""
Wormhole Bridge: drives the magic-wormhole executable for desktop frontends.

Wraps the command line tool's console output as structured transfer events
and exposes send/receive/cancel over Python, HTTP and the command line.
"""

__version__ = "0.1.0"

# Re-export core components for convenience
from .core import Settings, TransferOrchestrator

__all__ = [
    "Settings",
    "TransferOrchestrator",
]
