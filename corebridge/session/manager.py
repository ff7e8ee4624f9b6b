"""Registry of live sessions."""

from __future__ import annotations

from corebridge.session.session import Session


class SessionManager:
    """Tracks active sessions; only the broadcaster iterates across them."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def add(self, session: Session) -> None:
        self._sessions[session.id] = session

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Session | None:
        return self._sessions.pop(session_id, None)

    def list_active(self) -> list[Session]:
        return [s for s in self._sessions.values() if not s.closed]
