"""Pattern rules that turn raw wormhole console output into typed signals.

The wormhole executable has no structured output mode, so everything the
orchestrator knows about a running transfer comes from matching its wording.
Every pattern and keyword lives in this module.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union


CODE_PATTERN = re.compile(r"code is: (\d+-\w+-\w+)")
PERCENT_PATTERN = re.compile(r"(\d+)%")
RATIO_PATTERN = re.compile(r"(\d+)/(\d+)")

# stdout lines carrying these words describe the transfer lifecycle
STATUS_KEYWORDS = ("Receiving", "Sending", "bytes", "Connection", "Key")

# below this share of printable characters a chunk is treated as noise
READABLE_THRESHOLD = 0.85


class Stream(str, Enum):
    STDOUT = "stdout"
    STDERR = "stderr"


@dataclass(frozen=True)
class CodeSignal:
    code: str


@dataclass(frozen=True)
class ProgressSignal:
    percent: int


@dataclass(frozen=True)
class StatusSignal:
    message: str
    stream: Stream


Signal = Union[CodeSignal, ProgressSignal, StatusSignal]


def extract_code(text: str) -> Optional[str]:
    match = CODE_PATTERN.search(text)
    return match.group(1) if match else None


def extract_progress(text: str) -> Optional[int]:
    """Return a percentage from ``NN%`` or, failing that, from ``a/b``."""
    match = PERCENT_PATTERN.search(text)
    if match:
        return _clamp(int(match.group(1)))

    match = RATIO_PATTERN.search(text)
    if match:
        numerator, denominator = int(match.group(1)), int(match.group(2))
        if denominator == 0:
            return None
        return _clamp(round(numerator / denominator * 100))

    return None


def is_human_readable(text: str) -> bool:
    stripped = text.strip()
    if not stripped:
        return False
    printable = sum(1 for ch in stripped if ch.isprintable() or ch.isspace())
    return printable / len(stripped) >= READABLE_THRESHOLD


def classify(text: str, stream: Stream, kind: Optional[str] = None) -> List[Signal]:
    """Extract every signal a chunk carries, in rule order.

    Args:
        text: Decoded chunk as delivered by the stream
        stream: Stream the chunk arrived on
        kind: Transfer kind value (e.g. ``"receive-text"``)

    Returns:
        Zero or more signals; code first, then progress, then status
    """
    # stdout of a text receive is the payload itself, not protocol chatter
    if kind == "receive-text" and stream is Stream.STDOUT:
        return []

    signals: List[Signal] = []

    code = extract_code(text)
    if code:
        signals.append(CodeSignal(code))

    percent = extract_progress(text)
    if percent is not None:
        signals.append(ProgressSignal(percent))

    if not is_human_readable(text):
        return signals

    message = text.strip()
    if stream is Stream.STDERR:
        signals.append(StatusSignal(message, stream))
    elif any(keyword in text for keyword in STATUS_KEYWORDS) or not signals:
        signals.append(StatusSignal(message, stream))

    return signals


def _clamp(percent: int) -> int:
    return max(0, min(100, percent))
