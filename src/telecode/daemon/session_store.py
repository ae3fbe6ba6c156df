"""Per-chat backend/session state for one workspace."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Iterable, Optional

from telecode.daemon.backends import BACKEND_SPECS, Backend
from telecode.daemon.errors import BackendNotAllowedError, NoSessionError

logger = logging.getLogger(__name__)


@dataclass
class UsageStats:
    """Cumulative counters for one chat."""

    messages: int = 0
    images: int = 0
    runs: int = 0
    timeouts: int = 0
    session_resets: int = 0
    backend_switches: int = 0
    output_chars: int = 0
    run_seconds: float = 0.0
    created_at: float = field(default_factory=time.time)
    last_activity_at: Optional[float] = None

    def render(self, *, backend: Backend, session_id: Optional[str]) -> str:
        lines = [
            f"CLI:              {backend.value}",
            f"Session:          {session_id or '(none)'}",
            f"Messages:         {self.messages}",
            f"Images:           {self.images}",
            f"Backend runs:     {self.runs}",
            f"Timeouts:         {self.timeouts}",
            f"Session resets:   {self.session_resets}",
            f"CLI switches:     {self.backend_switches}",
            f"Output chars:     {self.output_chars}",
            f"Run time:         {self.run_seconds:.1f}s",
            f"Started:          {_format_timestamp(self.created_at)}",
            f"Last activity:    {_format_timestamp(self.last_activity_at)}",
        ]
        return "\n".join(lines)


@dataclass
class ChatSession:
    """Conversational state for one chat in one workspace."""

    chat_id: int
    backend: Backend
    session_id: Optional[str] = None
    stats: UsageStats = field(default_factory=UsageStats)


class SessionStore:
    """Thread-safe chat-id keyed session map with per-chat locking."""

    def __init__(
        self,
        default_backend: Backend = Backend.CLAUDE,
        allowed_backends: Optional[Iterable[Backend]] = None,
    ):
        allowed = tuple(Backend.parse(item) for item in (allowed_backends or Backend))
        self.allowed_backends: tuple[Backend, ...] = allowed or tuple(Backend)
        self.default_backend = Backend.parse(default_backend)
        if self.default_backend not in self.allowed_backends:
            self.default_backend = self.allowed_backends[0]
        self._sessions: dict[int, ChatSession] = {}
        self._chat_locks: dict[int, threading.RLock] = {}
        self._lock = threading.Lock()

    def chat_lock(self, chat_id: int) -> threading.RLock:
        """Return the lock serializing state changes for one chat."""
        key = int(chat_id)
        with self._lock:
            lock = self._chat_locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._chat_locks[key] = lock
            return lock

    def get(self, chat_id: int) -> tuple[Backend, Optional[str]]:
        """Return (active backend, backend session id), creating state lazily."""
        with self.chat_lock(chat_id):
            session = self._ensure(chat_id)
            return session.backend, session.session_id

    def get_backend(self, chat_id: int) -> Backend:
        return self.get(chat_id)[0]

    def has_session(self, chat_id: int) -> bool:
        with self._lock:
            return int(chat_id) in self._sessions

    def set_backend(self, chat_id: int, value: object) -> Backend:
        """Switch backend and drop the stored session id in one step."""
        backend = Backend.parse(value)
        if backend not in self.allowed_backends:
            raise BackendNotAllowedError(
                backend.value,
                supported=tuple(item.value for item in self.allowed_backends),
            )
        with self.chat_lock(chat_id):
            session = self._ensure(chat_id)
            session.backend = backend
            session.session_id = None
            session.stats.backend_switches += 1
            session.stats.last_activity_at = time.time()
        logger.info("chat=%s switched backend to %s", chat_id, backend.value)
        return backend

    def new_session(self, chat_id: int) -> None:
        """Forget the backend session id; the active backend is kept."""
        with self.chat_lock(chat_id):
            session = self._ensure(chat_id)
            session.session_id = None
            session.stats.session_resets += 1
            session.stats.last_activity_at = time.time()
        logger.debug("chat=%s session reset", chat_id)

    def update_session_from_output(
        self,
        chat_id: int,
        backend: object,
        output: str,
    ) -> Optional[str]:
        """Store the session id marker found in output, if any.

        Returns the stored id, or None when output carried no marker or the
        chat moved to another backend while the command was running.
        """
        run_backend = Backend.parse(backend)
        spec = BACKEND_SPECS.get(run_backend)
        if spec is None:
            return None
        session_id = spec.find_session_id(output)
        if not session_id:
            return None
        with self.chat_lock(chat_id):
            session = self._ensure(chat_id)
            if session.backend is not run_backend:
                logger.info(
                    "chat=%s dropped %s session id; active backend is %s",
                    chat_id,
                    run_backend.value,
                    session.backend.value,
                )
                return None
            session.session_id = session_id
        logger.debug("chat=%s stored session id %s", chat_id, session_id)
        return session_id

    def record_message(self, chat_id: int, *, image: bool = False) -> None:
        with self.chat_lock(chat_id):
            stats = self._ensure(chat_id).stats
            stats.messages += 1
            if image:
                stats.images += 1
            stats.last_activity_at = time.time()

    def record_run(
        self,
        chat_id: int,
        *,
        output_chars: int,
        elapsed_seconds: float,
        timed_out: bool = False,
    ) -> None:
        with self.chat_lock(chat_id):
            stats = self._ensure(chat_id).stats
            stats.runs += 1
            stats.output_chars += max(0, int(output_chars))
            stats.run_seconds += max(0.0, float(elapsed_seconds))
            if timed_out:
                stats.timeouts += 1
            stats.last_activity_at = time.time()

    def get_stats(self, chat_id: int) -> str:
        """Render usage counters for one chat."""
        with self.chat_lock(chat_id):
            with self._lock:
                session = self._sessions.get(int(chat_id))
            if session is None:
                raise NoSessionError(
                    "No statistics yet for this chat.",
                    hint="Send a message first.",
                )
            return session.stats.render(
                backend=session.backend,
                session_id=session.session_id,
            )

    def _ensure(self, chat_id: int) -> ChatSession:
        key = int(chat_id)
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = ChatSession(chat_id=key, backend=self.default_backend)
                self._sessions[key] = session
            return session


def _format_timestamp(value: Optional[float]) -> str:
    if not value:
        return "-"
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(value))
