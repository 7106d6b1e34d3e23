from __future__ import annotations

import asyncio
import codecs
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence

from .classifier import CodeSignal, ProgressSignal, Signal, StatusSignal, Stream, classify
from .events import (
    CancelledEvent,
    CodeEvent,
    CompleteEvent,
    EventHandler,
    ProgressEvent,
    StatusEvent,
    TransferEvent,
    dispatch,
)
from .exceptions import NonZeroExit, ProcessRuntimeError, SpawnError, TransferCancelled

if TYPE_CHECKING:
    from .logging import TransferLogger
    from .registry import TransferRegistry

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


class TransferKind(str, Enum):
    SEND_FILES = "send-files"
    RECEIVE_FILES = "receive-files"
    SEND_TEXT = "send-text"
    RECEIVE_TEXT = "receive-text"

    @property
    def is_receive(self) -> bool:
        return self in (TransferKind.RECEIVE_FILES, TransferKind.RECEIVE_TEXT)


class TransferState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    AWAITING_CONFIRMATION = "awaiting-confirmation"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset(
    {TransferState.SUCCEEDED, TransferState.FAILED, TransferState.CANCELLED}
)


@dataclass
class TransferResult:
    """Outcome of a successful transfer."""

    session_id: str
    kind: TransferKind
    success: bool = True
    code: Optional[str] = None
    text: Optional[str] = None
    destination: Optional[str] = None
    exit_code: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "session_id": self.session_id,
            "kind": self.kind.value,
            "success": self.success,
            "code": self.code,
            "text": self.text,
            "destination": self.destination,
            "exit_code": self.exit_code,
        }


class TransferSession:
    """One run of the wormhole executable and everything learned from it.

    The session owns its process handle and output buffers exclusively. It
    reaches a terminal state exactly once; the registry entry is dropped and
    every handler detached at that moment, so nothing is delivered after it.
    """

    def __init__(
        self,
        session_id: str,
        kind: TransferKind,
        argv: Sequence[str],
        registry: "TransferRegistry",
        *,
        cwd: Optional[Path] = None,
        confirm_delay: float = 1.0,
        confirm_token: str = "y",
        terminate_grace: Optional[float] = 5.0,
        output_logger: Optional["TransferLogger"] = None,
    ):
        self.id = session_id
        self.kind = kind
        self.argv = [str(arg) for arg in argv]
        self.cwd = Path(cwd) if cwd is not None else None
        self.confirm_delay = confirm_delay
        self.confirm_token = confirm_token
        self.terminate_grace = terminate_grace
        self.output_logger = output_logger

        self.state = TransferState.STARTING
        self.stdout_text = ""
        self.stderr_text = ""
        self.code: Optional[str] = None
        self.progress: Optional[int] = None
        self.exit_code: Optional[int] = None
        self.error: Optional[str] = None
        self.result: Optional[TransferResult] = None

        self._registry = registry
        self._handlers: List[EventHandler] = []
        self._process: Optional[asyncio.subprocess.Process] = None
        self._confirm_task: Optional[asyncio.Task] = None
        self._kill_handle: Optional[asyncio.TimerHandle] = None
        self._drive_task: Optional[asyncio.Task] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_live(self) -> bool:
        return not self.is_terminal and self._registry.is_live(self.id)

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Attach an event handler; returns a callable that detaches it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def start(self) -> None:
        """Spawn the process and begin streaming its output.

        Raises:
            SpawnError: If the operating system could not start the process
        """
        logger.info(
            "Spawning wormhole for %s transfer %s: %s (cwd=%s)",
            self.kind.value,
            self.id,
            self.argv,
            self.cwd or ".",
        )
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.cwd) if self.cwd is not None else None,
            )
        except (OSError, ValueError) as exc:
            message = f"Failed to start wormhole: {exc}"
            logger.error("Spawn failed for transfer %s: %s", self.id, exc)
            self.error = message
            await self._finish(
                TransferState.FAILED,
                CompleteEvent(session_id=self.id, success=False, error=message),
            )
            raise SpawnError(message) from exc

        if self.is_terminal:
            # cancelled while the spawn was in flight
            self._terminate_process()
            self._release()
            self._drive_task = asyncio.create_task(self._drive())
            return

        self.state = TransferState.RUNNING
        if self.kind.is_receive:
            self.state = TransferState.AWAITING_CONFIRMATION
            self._confirm_task = asyncio.create_task(self._auto_confirm())
            await self._emit(
                StatusEvent(session_id=self.id, message="Connecting to sender...")
            )

        self._drive_task = asyncio.create_task(self._drive())

    async def wait(self) -> TransferResult:
        """Wait for the session to settle.

        Raises:
            NonZeroExit: If the process exited with a failure code
            ProcessRuntimeError: If the process handle failed while running
            TransferCancelled: If the session was cancelled
        """
        if self._drive_task is None:
            raise RuntimeError(f"Transfer {self.id} has not been started")
        return await self._drive_task

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._drive_task

    async def cancel(self) -> bool:
        """Terminate the process; False if the session had already settled."""
        if self.is_terminal:
            return False
        logger.info("Cancelling transfer %s", self.id)
        self._terminate_process()
        return await self._finish(
            TransferState.CANCELLED, CancelledEvent(session_id=self.id)
        )

    def failure_message(self, exit_code: Optional[int]) -> str:
        return (
            self.stderr_text.strip()
            or self.stdout_text.strip()
            or f"Process exited with code {exit_code}"
        )

    async def _drive(self) -> TransferResult:
        process = self._process
        assert process is not None
        try:
            # stream EOF precedes exit, so every chunk is seen before the result
            await asyncio.gather(
                self._pump(process.stdout, Stream.STDOUT),
                self._pump(process.stderr, Stream.STDERR),
            )
            exit_code = await process.wait()
        except asyncio.CancelledError:
            self._terminate_process()
            await self._finish(
                TransferState.CANCELLED, CancelledEvent(session_id=self.id)
            )
            raise
        except OSError as exc:
            if self.state is TransferState.CANCELLED:
                raise TransferCancelled(self.id) from exc
            message = f"Wormhole process error: {exc}"
            logger.error("Transfer %s process error: %s", self.id, exc)
            self._terminate_process()
            self.error = message
            await self._finish(
                TransferState.FAILED,
                CompleteEvent(session_id=self.id, success=False, error=message),
            )
            raise ProcessRuntimeError(message) from exc
        finally:
            if process.returncode is not None and self._kill_handle is not None:
                self._kill_handle.cancel()
                self._kill_handle = None

        self.exit_code = exit_code
        logger.info("Wormhole process for transfer %s exited with code %s", self.id, exit_code)

        if self.state is TransferState.CANCELLED:
            raise TransferCancelled(self.id)

        if exit_code == 0:
            result = TransferResult(
                session_id=self.id,
                kind=self.kind,
                code=self.code,
                exit_code=exit_code,
            )
            if self.kind is TransferKind.RECEIVE_TEXT:
                result.text = self.stdout_text.strip()
            if self.kind is TransferKind.RECEIVE_FILES and self.cwd is not None:
                result.destination = str(self.cwd)
            self.result = result
            await self._finish(
                TransferState.SUCCEEDED,
                CompleteEvent(session_id=self.id, success=True, code=self.code),
            )
            return result

        message = self.failure_message(exit_code)
        self.error = message
        logger.warning("Transfer %s failed: %s", self.id, message)
        await self._finish(
            TransferState.FAILED,
            CompleteEvent(session_id=self.id, success=False, error=message),
        )
        raise NonZeroExit(exit_code, message)

    async def _pump(self, stream: Optional[asyncio.StreamReader], which: Stream) -> None:
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        pending = ""
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            pending += decoder.decode(chunk, final=not chunk)
            # hand over whole lines so a code split across reads stays intact
            if not chunk or len(pending) >= READ_CHUNK_SIZE:
                cut = len(pending)
            else:
                cut = max(pending.rfind("\n"), pending.rfind("\r")) + 1
            if cut:
                await self._on_output(pending[:cut], which)
                pending = pending[cut:]
            if not chunk:
                return

    async def _on_output(self, text: str, which: Stream) -> None:
        if not self.is_live:
            return

        if which is Stream.STDOUT:
            self.stdout_text += text
        else:
            self.stderr_text += text
        logger.debug("Transfer %s %s: %r", self.id, which.value, text)

        if self.output_logger is not None:
            await self.output_logger.log_output(self.id, which.value, text)

        for signal in classify(text, which, self.kind.value):
            if not self.is_live:
                return
            await self._apply(signal)

    async def _apply(self, signal: Signal) -> None:
        if isinstance(signal, CodeSignal):
            if self.code is not None:
                return
            self.code = signal.code
            await self._emit(CodeEvent(session_id=self.id, code=signal.code))
        elif isinstance(signal, ProgressSignal):
            self.progress = signal.percent
            await self._emit(ProgressEvent(session_id=self.id, percent=signal.percent))
        elif isinstance(signal, StatusSignal):
            await self._emit(
                StatusEvent(
                    session_id=self.id,
                    message=signal.message,
                    stream=signal.stream.value,
                )
            )

    async def _emit(self, event: TransferEvent) -> None:
        await dispatch(self._handlers, event, still_live=lambda: self.is_live)

    async def _finish(self, state: TransferState, event: TransferEvent) -> bool:
        if self.is_terminal:
            return False
        self.state = state
        self._registry.remove(self.id)
        logger.info("Transfer %s %s", self.id, state.value)
        try:
            await dispatch(self._handlers, event)
        finally:
            self._release()
        return True

    def _release(self) -> None:
        if self._confirm_task is not None and not self._confirm_task.done():
            self._confirm_task.cancel()
        self._confirm_task = None
        self._handlers.clear()
        if self._process is not None and self._process.stdin is not None:
            self._process.stdin.close()

    def _terminate_process(self) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            return
        if self.terminate_grace is not None and self._kill_handle is None:
            loop = asyncio.get_running_loop()
            self._kill_handle = loop.call_later(self.terminate_grace, self._force_kill)

    def _force_kill(self) -> None:
        self._kill_handle = None
        process = self._process
        if process is None or process.returncode is not None:
            return
        logger.warning("Transfer %s ignored terminate, killing pid %s", self.id, process.pid)
        try:
            process.kill()
        except ProcessLookupError:
            pass

    async def _auto_confirm(self) -> None:
        await asyncio.sleep(self.confirm_delay)
        process = self._process
        if not self.is_live or process is None or process.stdin is None:
            return
        if process.returncode is not None:
            return
        try:
            process.stdin.write(f"{self.confirm_token}\n".encode())
            await process.stdin.drain()
            logger.debug("Sent auto-confirmation to transfer %s", self.id)
        except (BrokenPipeError, ConnectionResetError) as exc:
            logger.debug("Auto-confirmation for transfer %s not delivered: %s", self.id, exc)
        if self.state is TransferState.AWAITING_CONFIRMATION:
            self.state = TransferState.RUNNING
