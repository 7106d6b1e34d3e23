from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from .session import TransferSession

logger = logging.getLogger(__name__)


class TransferRegistry:
    """Live transfer sessions keyed by session id.

    An id is present exactly while its session is not terminal. The registry
    is only touched from the event loop thread, so it needs no locking;
    ``remove`` and ``cancel`` tolerate being called twice for the same id.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, "TransferSession"] = {}

    def register(self, session_id: str, session: "TransferSession") -> None:
        if session_id in self._sessions:
            raise ValueError(f"Transfer session {session_id} is already registered")
        self._sessions[session_id] = session

    def lookup(self, session_id: str) -> Optional["TransferSession"]:
        return self._sessions.get(session_id)

    def is_live(self, session_id: str) -> bool:
        return session_id in self._sessions

    def remove(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    async def cancel(self, session_id: str) -> bool:
        """Terminate and remove a live session; False when none was found."""
        session = self._sessions.get(session_id)
        if session is None:
            logger.debug("Cancel requested for unknown transfer %s", session_id)
            return False
        cancelled = await session.cancel()
        self.remove(session_id)
        return cancelled

    def session_ids(self) -> List[str]:
        return list(self._sessions.keys())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
