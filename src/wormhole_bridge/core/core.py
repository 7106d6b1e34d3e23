from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .config import Settings
from .events import CompleteEvent, EventHandler, TransferEvent
from .exceptions import ExecutableNotFound
from .logging import TransferLogger
from .models import FileInfo
from .notifications import LogNotifier, Notifier
from .registry import TransferRegistry
from .session import TransferKind, TransferResult, TransferSession

logger = logging.getLogger(__name__)


SUCCESS_NOTIFICATIONS: Dict[TransferKind, str] = {
    TransferKind.SEND_FILES: "Files sent successfully! Code: {code}",
    TransferKind.RECEIVE_FILES: "Files received successfully!",
    TransferKind.SEND_TEXT: "Text sent! Code: {code}",
    TransferKind.RECEIVE_TEXT: "Text message received!",
}


class TransferOrchestrator:
    """Frontend-agnostic interface to the wormhole executable.

    Each operation creates a ``TransferSession``, registers it, spawns the
    executable and settles once the process exits. Frontends observe progress
    through event handlers added with ``add_listener`` or passed per call.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        notifier: Optional[Notifier] = None,
        transfer_logger: Optional[TransferLogger] = None,
        registry: Optional[TransferRegistry] = None,
    ):
        self.settings = settings or Settings()
        self.registry = registry or TransferRegistry()
        self.notifier = notifier or LogNotifier()
        if transfer_logger is None and self.settings.log_dir is not None:
            transfer_logger = TransferLogger(self.settings.log_dir)
        self.transfer_logger = transfer_logger
        self._listeners: List[EventHandler] = []

    @property
    def wormhole_path(self) -> Path:
        return self.settings.resolve_wormhole_path()

    def add_listener(self, handler: EventHandler) -> Callable[[], None]:
        """Attach a handler to every session started from now on."""
        self._listeners.append(handler)

        def remove() -> None:
            if handler in self._listeners:
                self._listeners.remove(handler)

        return remove

    async def start(
        self,
        kind: TransferKind,
        *,
        files: Optional[Iterable[str | Path]] = None,
        code: Optional[str] = None,
        text: Optional[str] = None,
        save_location: Optional[str | Path] = None,
        on_event: Optional[EventHandler] = None,
    ) -> TransferSession:
        """Start a transfer and return its live session without waiting.

        Raises:
            ValueError: If the arguments for ``kind`` are missing or invalid
            ExecutableNotFound: If the wormhole binary does not exist
            SpawnError: If the process could not be started
        """
        kind = TransferKind(kind)
        args, cwd = self._build_arguments(kind, files, code, text, save_location)

        wormhole_path = self.wormhole_path
        if not wormhole_path.exists():
            logger.error("Wormhole binary not found at: %s", wormhole_path)
            raise ExecutableNotFound(wormhole_path)

        session_id = uuid.uuid4().hex
        session = TransferSession(
            session_id,
            kind,
            [str(wormhole_path), *args],
            self.registry,
            cwd=cwd,
            confirm_delay=self.settings.confirm_delay,
            confirm_token=self.settings.confirm_token,
            terminate_grace=self.settings.terminate_grace,
            output_logger=self.transfer_logger,
        )
        for handler in self._listeners:
            session.subscribe(handler)
        if on_event is not None:
            session.subscribe(on_event)
        if self.transfer_logger is not None:
            session.subscribe(self.transfer_logger)
        session.subscribe(self._notification_handler(session))

        self.registry.register(session_id, session)
        await session.start()
        return session

    async def send_files(
        self, file_paths: Iterable[str | Path], *, on_event: Optional[EventHandler] = None
    ) -> TransferResult:
        session = await self.start(TransferKind.SEND_FILES, files=file_paths, on_event=on_event)
        return await session.wait()

    async def receive_files(
        self,
        code: str,
        save_location: Optional[str | Path] = None,
        *,
        on_event: Optional[EventHandler] = None,
    ) -> TransferResult:
        session = await self.start(
            TransferKind.RECEIVE_FILES,
            code=code,
            save_location=save_location,
            on_event=on_event,
        )
        return await session.wait()

    async def send_text(
        self, text: str, *, on_event: Optional[EventHandler] = None
    ) -> TransferResult:
        session = await self.start(TransferKind.SEND_TEXT, text=text, on_event=on_event)
        return await session.wait()

    async def receive_text(
        self, code: str, *, on_event: Optional[EventHandler] = None
    ) -> TransferResult:
        session = await self.start(TransferKind.RECEIVE_TEXT, code=code, on_event=on_event)
        return await session.wait()

    async def cancel(self, session_id: str) -> bool:
        """Cancel a live transfer; True iff one was found and terminated."""
        return await self.registry.cancel(session_id)

    async def cancel_all(self) -> None:
        for session_id in self.registry.session_ids():
            await self.cancel(session_id)

    def get_active_transfers(self) -> List[str]:
        return self.registry.session_ids()

    def get_session(self, session_id: str) -> Optional[TransferSession]:
        return self.registry.lookup(session_id)

    def get_downloads_dir(self) -> Path:
        return self.settings.downloads_dir

    async def is_wormhole_available(self) -> bool:
        """Check that the wormhole executable runs and reports a version."""
        wormhole_path = self.wormhole_path
        try:
            proc = await asyncio.create_subprocess_exec(
                str(wormhole_path), "--version",
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            logger.warning("Wormhole not available at %s: %s", wormhole_path, exc)
            return False

        try:
            await asyncio.wait_for(proc.wait(), timeout=self.settings.availability_timeout)
        except asyncio.TimeoutError:
            logger.warning("Wormhole --version timed out after %s seconds", self.settings.availability_timeout)
            proc.kill()
            await proc.wait()
            return False
        return proc.returncode == 0

    def describe_files(self, file_paths: Iterable[str | Path]) -> List[FileInfo]:
        """Describe files picked for sending.

        Raises:
            FileNotFoundError: If any path does not exist
        """
        infos: List[FileInfo] = []
        for raw in file_paths:
            path = Path(raw).expanduser()
            stats = path.stat()
            infos.append(FileInfo(path=str(path), name=path.name, size=stats.st_size))
        return infos

    def _build_arguments(
        self,
        kind: TransferKind,
        files: Optional[Iterable[str | Path]],
        code: Optional[str],
        text: Optional[str],
        save_location: Optional[str | Path],
    ) -> Tuple[List[str], Optional[Path]]:
        if kind is TransferKind.SEND_FILES:
            paths = [str(p) for p in (files or [])]
            if not paths:
                raise ValueError("At least one file is required to send")
            return ["send", *paths], None

        if kind is TransferKind.SEND_TEXT:
            if not text:
                raise ValueError("Text to send must not be empty")
            return ["send", "--text", text], None

        code = (code or "").strip()
        if not code:
            raise ValueError("A wormhole code is required to receive")

        if kind is TransferKind.RECEIVE_FILES:
            destination = Path(save_location).expanduser() if save_location else self.get_downloads_dir()
            if not destination.is_dir():
                raise ValueError(f"Save location '{destination}' is not a directory")
            return ["receive", code], destination

        return ["receive", code], None

    def _notification_handler(self, session: TransferSession) -> EventHandler:
        async def notify_on_success(event: TransferEvent) -> None:
            if not isinstance(event, CompleteEvent) or not event.success:
                return
            if not self.settings.show_notifications:
                return
            body = SUCCESS_NOTIFICATIONS[session.kind].format(code=event.code)
            self.notifier.notify(self.settings.notification_title, body)

        return notify_on_success
