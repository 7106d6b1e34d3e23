from __future__ import annotations

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


class FileInfo(BaseModel):
    """A file chosen for sending."""
    path: str
    name: str
    size: int


class FileInfoRequest(BaseModel):
    file_paths: List[str]


class SendFilesRequest(BaseModel):
    file_paths: List[str] = Field(min_length=1)


class ReceiveFilesRequest(BaseModel):
    code: str = Field(min_length=1)
    save_location: Optional[str] = None


class SendTextRequest(BaseModel):
    text: str = Field(min_length=1)


class ReceiveTextRequest(BaseModel):
    code: str = Field(min_length=1)


class TransferStarted(BaseModel):
    session_id: str
    kind: str


class TransferStatus(BaseModel):
    """Live state of a running transfer, or the outcome of a finished one."""
    session_id: str
    kind: str
    state: str
    code: Optional[str] = None
    progress: Optional[int] = None
    error: Optional[str] = None
    result: Optional[Dict[str, Any]] = None


class CancelResponse(BaseModel):
    session_id: str
    cancelled: bool


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""
    status: str
    service: str
    wormhole_path: str
    wormhole_available: bool
    active_transfers: int = 0
