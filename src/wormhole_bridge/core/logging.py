"""
Per-transfer logging for the wormhole bridge.

Writes every event and raw output chunk of a session to JSON lines files:
{log_dir}/transfers/{session_id}/events_YYYY-MM-DD.jsonl
{log_dir}/transfers/{session_id}/output_YYYY-MM-DD.jsonl
"""

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

import aiofiles


class TransferLogger:
    """
    Session logger for wormhole transfers.

    Instances are callable so they can be attached as event handlers.
    """

    def __init__(self, base_log_dir: Path):
        self.base_log_dir = Path(base_log_dir)
        self.transfer_log_dir = self.base_log_dir / "transfers"
        self._write_locks: Dict[str, asyncio.Lock] = {}

    def session_dir(self, session_id: str) -> Path:
        return self.transfer_log_dir / session_id

    def _get_write_lock(self, session_id: str) -> asyncio.Lock:
        if session_id not in self._write_locks:
            self._write_locks[session_id] = asyncio.Lock()
        return self._write_locks[session_id]

    async def _append(self, session_id: str, prefix: str, entry: Dict[str, Any]) -> None:
        session_dir = self.session_dir(session_id)
        session_dir.mkdir(parents=True, exist_ok=True)

        today = datetime.now().strftime("%Y-%m-%d")
        log_file = session_dir / f"{prefix}_{today}.jsonl"

        record = {
            "timestamp": datetime.now().isoformat(),
            "session": session_id,
            **entry,
        }
        async with self._get_write_lock(session_id):
            async with aiofiles.open(log_file, "a", encoding="utf-8") as f:
                await f.write(json.dumps(record, ensure_ascii=False) + "\n")

    async def log_output(self, session_id: str, stream: str, text: str) -> None:
        """
        Log a raw output chunk.

        Args:
            session_id: Transfer session identifier
            stream: "stdout" or "stderr"
            text: Decoded output, split on line boundaries where possible
        """
        try:
            await self._append(session_id, "output", {"stream": stream, "text": text})
        except Exception as e:
            # Fallback to standard logging if file write fails
            logging.error(f"Failed to write output log for session {session_id}: {e}")

    async def __call__(self, event) -> None:
        try:
            await self._append(event.session_id, "events", {"event": event.model_dump()})
        except Exception as e:
            logging.error(f"Failed to write event log for session {event.session_id}: {e}")
        if event.type in ("complete", "cancelled"):
            self.forget(event.session_id)

    def forget(self, session_id: str) -> None:
        """Drop the write lock of a finished session."""
        self._write_locks.pop(session_id, None)
