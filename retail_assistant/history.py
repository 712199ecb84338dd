"""
Per-session conversation history.

A process-wide, in-memory store of the most recent chat turns of every
session. It is created once at startup, injected into the components that
need it and discarded at shutdown; nothing survives a restart.
"""

import threading
from collections import deque
from typing import Deque, Dict, Optional, Tuple

from retail_assistant.logger import get_logger
from retail_assistant.models import ChatTurn

logger = get_logger("history")

MAX_TURNS = 20


class _SessionLog:
    """Turns of one session guarded by their own lock."""

    __slots__ = ("lock", "turns", "closed")

    def __init__(self, max_turns: int):
        self.lock = threading.Lock()
        self.turns: Deque[ChatTurn] = deque(maxlen=max_turns)
        self.closed = False


class SessionHistoryStore:
    """
    Thread-safe, bounded history of chat turns keyed by session id.

    Each session has its own lock, so writers to different sessions never
    wait on each other; the registry lock is held only to look up, create or
    remove a session entry. Operations on one session are linearizable: a
    reader sees either all or none of the turns of a given append.
    """

    def __init__(self, max_turns: int = MAX_TURNS):
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self.max_turns = max_turns
        self._sessions: Dict[str, _SessionLog] = {}
        self._registry_lock = threading.Lock()

    def _get_or_create(self, session_id: str) -> _SessionLog:
        with self._registry_lock:
            log = self._sessions.get(session_id)
            if log is None:
                log = _SessionLog(self.max_turns)
                self._sessions[session_id] = log
            return log

    def _get(self, session_id: str) -> Optional[_SessionLog]:
        with self._registry_lock:
            return self._sessions.get(session_id)

    def append(self, session_id: str, *turns: ChatTurn) -> None:
        """
        Atomically append turns, evicting the oldest beyond the cap.

        Args:
            session_id: Session to append to
            turns: One or more turns, in conversation order
        """
        if not turns:
            return

        while True:
            log = self._get_or_create(session_id)
            with log.lock:
                # A concurrent clear() retired this log; resolve the session again.
                if log.closed:
                    continue
                log.turns.extend(turns)
                return

    def read(self, session_id: str) -> Tuple[ChatTurn, ...]:
        """Return a snapshot of the session's turns (empty for unknown sessions)."""
        log = self._get(session_id)
        if log is None:
            return ()
        with log.lock:
            if log.closed:
                return ()
            return tuple(log.turns)

    def recent(self, session_id: str, count: int) -> Tuple[ChatTurn, ...]:
        """Return at most `count` of the session's most recent turns, oldest first."""
        if count <= 0:
            return ()
        return self.read(session_id)[-count:]

    def clear(self, session_id: str) -> None:
        """Remove a session's history. Clearing an unknown session is a no-op."""
        with self._registry_lock:
            log = self._sessions.pop(session_id, None)
        if log is None:
            return
        with log.lock:
            log.closed = True
            log.turns.clear()
        logger.info("Cleared conversation history for session %s", session_id)

    def session_count(self) -> int:
        with self._registry_lock:
            return len(self._sessions)

    def close(self) -> None:
        """Drop every session (process shutdown)."""
        with self._registry_lock:
            logs = list(self._sessions.values())
            self._sessions.clear()
        for log in logs:
            with log.lock:
                log.closed = True
                log.turns.clear()
        logger.info("Session history store closed (%d sessions dropped)", len(logs))
