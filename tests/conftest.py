import sys
import textwrap
from pathlib import Path
from typing import List

import pytest

# Ensure src is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from wormhole_bridge.core import Settings
from wormhole_bridge.core.events import TransferEvent


class EventRecorder:
    """Event handler that keeps everything it is given."""

    def __init__(self) -> None:
        self.events: List[TransferEvent] = []

    async def __call__(self, event: TransferEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> List[TransferEvent]:
        return [event for event in self.events if event.type == event_type]

    @property
    def types(self) -> List[str]:
        return [event.type for event in self.events]


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def make_wormhole(tmp_path):
    """Write a Python script standing in for the wormhole executable."""

    def _make(body: str, name: str = "wormhole") -> Path:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)
        path = bin_dir / name
        path.write_text(
            f"#!{sys.executable}\n"
            "import signal, sys, time\n"
            + textwrap.dedent(body)
        )
        path.chmod(0o755)
        return path

    return _make


@pytest.fixture
def make_settings(tmp_path):
    downloads = tmp_path / "downloads"
    downloads.mkdir()

    def _make(wormhole_path: Path, **overrides) -> Settings:
        values = {
            "wormhole_path": wormhole_path,
            "confirm_delay": 0.05,
            "terminate_grace": 1.0,
            "downloads_dir": downloads,
            "availability_timeout": 5.0,
        }
        values.update(overrides)
        return Settings(**values)

    return _make


SEND_SUCCESS = """
sys.stdout.write("Wormhole code is: 3-apple-banana\\n")
sys.stdout.flush()
time.sleep(0.05)
sys.stdout.write("45%\\n")
sys.stdout.flush()
"""

CONNECTION_REFUSED = """
sys.stderr.write("connection refused")
sys.stderr.flush()
sys.exit(1)
"""
