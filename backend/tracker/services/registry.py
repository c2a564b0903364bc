"""
Session Registry - keeps the live tracking sessions of this process.

Sessions are purely in-memory and disappear with the process. Each
session is paired with a lock so that request handlers running in a
thread pool never mutate the same session concurrently.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional

from tracker.models.errors import SessionNotFoundError
from tracker.models.session import TrackingConfig
from tracker.services.session import Clock, TrackingSession


logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    session: TrackingSession
    label: Optional[str] = None
    lock: threading.Lock = field(default_factory=threading.Lock)


class SessionRegistry:
    """
    Registry of tracking sessions keyed by session id.

    The registry is the owning controller of every session it creates:
    callers mutate a session only inside `locked(session_id)`.
    """

    def __init__(self, default_config: Optional[TrackingConfig] = None, clock: Optional[Clock] = None):
        self._default_config = default_config or TrackingConfig()
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._guard = threading.Lock()

    @property
    def default_config(self) -> TrackingConfig:
        return self._default_config

    def __len__(self) -> int:
        return len(self._entries)

    def create(self, config: Optional[TrackingConfig] = None, label: Optional[str] = None) -> TrackingSession:
        """Create and register a new Idle session."""
        session = TrackingSession(config=config or self._default_config, clock=self._clock)
        with self._guard:
            self._entries[session.session_id] = _Entry(session=session, label=label)
        logger.info(f"Created session {session.session_id}" + (f" ({label})" if label else ""))
        return session

    def get(self, session_id: str) -> TrackingSession:
        """
        Raises:
            SessionNotFoundError: if no such session exists
        """
        return self._entry(session_id).session

    def label(self, session_id: str) -> Optional[str]:
        return self._entry(session_id).label

    def list_ids(self) -> list[str]:
        with self._guard:
            return list(self._entries)

    def remove(self, session_id: str) -> None:
        """Stop and forget a session."""
        with self._guard:
            entry = self._entries.pop(session_id, None)
        if entry is None:
            raise SessionNotFoundError(session_id)
        with entry.lock:
            entry.session.stop()
        logger.info(f"Removed session {session_id}")

    @contextmanager
    def locked(self, session_id: str) -> Iterator[TrackingSession]:
        """Hold the session's lock while the caller drives it."""
        entry = self._entry(session_id)
        with entry.lock:
            yield entry.session

    def _entry(self, session_id: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(session_id)
        if entry is None:
            raise SessionNotFoundError(session_id)
        return entry


# Global registry instance (set up by app initialization)
_registry: Optional[SessionRegistry] = None


def get_registry() -> SessionRegistry:
    """Get the global registry instance."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry


def init_registry(default_config: Optional[TrackingConfig] = None, clock: Optional[Clock] = None) -> SessionRegistry:
    """Replace the global registry (used at startup and by tests)."""
    global _registry
    _registry = SessionRegistry(default_config=default_config, clock=clock)
    return _registry
