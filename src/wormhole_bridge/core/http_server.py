from __future__ import annotations

import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from cachetools import TTLCache

from .config import Settings
from .core import TransferOrchestrator
from .events import EventBroadcaster
from .exceptions import ExecutableNotFound, SpawnError
from .models import (
    CancelResponse,
    FileInfo,
    FileInfoRequest,
    HealthResponse,
    ReceiveFilesRequest,
    ReceiveTextRequest,
    SendFilesRequest,
    SendTextRequest,
    TransferStarted,
    TransferStatus,
)
from .session import TransferKind, TransferSession

logger = logging.getLogger(__name__)


class HTTPServer:
    """FastAPI bridge between a UI frontend and the transfer orchestrator."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        orchestrator: Optional[TransferOrchestrator] = None,
    ):
        self.settings = settings or Settings()
        self.orchestrator = orchestrator or TransferOrchestrator(self.settings)
        self.broadcaster = EventBroadcaster()
        self.orchestrator.add_listener(self.broadcaster)

        # Finished transfers stay queryable for a while after leaving the registry
        self.finished = TTLCache(
            maxsize=self.settings.result_cache_size,
            ttl=self.settings.result_cache_ttl,
        )

        self.app = self._create_app()

    def _create_app(self) -> FastAPI:
        """Create and configure FastAPI application."""
        app = FastAPI(
            title="Wormhole Bridge",
            version="0.1.0",
            description="HTTP and WebSocket bridge to the wormhole transfer orchestrator",
        )

        # The desktop frontend is served from a local origin
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        self._register_routes(app)
        return app

    def _status_of(self, session: TransferSession) -> TransferStatus:
        return TransferStatus(
            session_id=session.id,
            kind=session.kind.value,
            state=session.state.value,
            code=session.code,
            progress=session.progress,
            error=session.error,
            result=session.result.to_dict() if session.result else None,
        )

    def _track(self, session: TransferSession) -> None:
        def remember(task: asyncio.Task) -> None:
            if not task.cancelled() and task.exception() is not None:
                logger.info("Transfer %s ended: %s", session.id, task.exception())
            self.finished[session.id] = self._status_of(session)

        if session.task is not None:
            session.task.add_done_callback(remember)

    async def _start(self, kind: TransferKind, **kwargs) -> TransferStarted:
        try:
            session = await self.orchestrator.start(kind, **kwargs)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        except ExecutableNotFound as e:
            raise HTTPException(status_code=503, detail=str(e))
        except SpawnError as e:
            raise HTTPException(status_code=500, detail=str(e))

        self._track(session)
        return TransferStarted(session_id=session.id, kind=kind.value)

    def _register_routes(self, app: FastAPI) -> None:
        """Register API routes."""

        @app.get("/health", response_model=HealthResponse)
        async def health_endpoint() -> HealthResponse:
            available = await self.orchestrator.is_wormhole_available()
            return HealthResponse(
                status="healthy" if available else "degraded",
                service="Wormhole Bridge",
                wormhole_path=str(self.orchestrator.wormhole_path),
                wormhole_available=available,
                active_transfers=len(self.orchestrator.get_active_transfers()),
            )

        @app.get("/downloads-dir")
        async def downloads_dir():
            return {"path": str(self.orchestrator.get_downloads_dir())}

        @app.post("/files/info", response_model=list[FileInfo])
        async def file_info(request: FileInfoRequest) -> list[FileInfo]:
            try:
                return self.orchestrator.describe_files(request.file_paths)
            except OSError as e:
                raise HTTPException(status_code=404, detail=f"Cannot read file: {e}")

        @app.post("/transfers/send-files", response_model=TransferStarted, status_code=202)
        async def send_files(request: SendFilesRequest) -> TransferStarted:
            return await self._start(TransferKind.SEND_FILES, files=request.file_paths)

        @app.post("/transfers/receive-files", response_model=TransferStarted, status_code=202)
        async def receive_files(request: ReceiveFilesRequest) -> TransferStarted:
            return await self._start(
                TransferKind.RECEIVE_FILES,
                code=request.code,
                save_location=request.save_location,
            )

        @app.post("/transfers/send-text", response_model=TransferStarted, status_code=202)
        async def send_text(request: SendTextRequest) -> TransferStarted:
            return await self._start(TransferKind.SEND_TEXT, text=request.text)

        @app.post("/transfers/receive-text", response_model=TransferStarted, status_code=202)
        async def receive_text(request: ReceiveTextRequest) -> TransferStarted:
            return await self._start(TransferKind.RECEIVE_TEXT, code=request.code)

        @app.get("/transfers")
        async def list_transfers():
            return {"active_transfers": self.orchestrator.get_active_transfers()}

        @app.get("/transfers/{session_id}", response_model=TransferStatus)
        async def get_transfer(session_id: str) -> TransferStatus:
            session = self.orchestrator.get_session(session_id)
            if session is not None:
                return self._status_of(session)
            finished = self.finished.get(session_id)
            if finished is not None:
                return finished
            raise HTTPException(status_code=404, detail=f"Unknown transfer: {session_id}")

        @app.post("/transfers/{session_id}/cancel", response_model=CancelResponse)
        async def cancel_transfer(session_id: str) -> CancelResponse:
            session = self.orchestrator.get_session(session_id)
            cancelled = await self.orchestrator.cancel(session_id)
            if cancelled and session is not None:
                self.finished[session_id] = self._status_of(session)
            return CancelResponse(session_id=session_id, cancelled=cancelled)

        @app.websocket("/events")
        async def events(websocket: WebSocket):
            queue = self.broadcaster.subscribe()
            try:
                await websocket.accept()
                while True:
                    event = await queue.get()
                    await websocket.send_json(event.model_dump())
            except WebSocketDisconnect:
                pass
            finally:
                self.broadcaster.unsubscribe(queue)

    async def startup(self):
        """Startup tasks."""
        logger.info("Starting Wormhole Bridge")
        logger.info("Wormhole executable: %s", self.orchestrator.wormhole_path)

    async def shutdown(self):
        """Cleanup tasks."""
        logger.info("Shutting down Wormhole Bridge, cancelling %d transfer(s)",
                    len(self.orchestrator.get_active_transfers()))
        await self.orchestrator.cancel_all()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Factory function to create FastAPI application."""
    server = HTTPServer(settings)

    @server.app.on_event("startup")
    async def startup_event():
        await server.startup()

    @server.app.on_event("shutdown")
    async def shutdown_event():
        await server.shutdown()

    return server.app
