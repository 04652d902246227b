from __future__ import annotations

import enum
import logging
import threading
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from .constants import DEFAULT_MAX_TOMBSTONES
from .session import Session

logger = logging.getLogger(__name__)


class RegistryError(Exception):
    """Raised when a registry operation would break its invariants."""


class EntryState(enum.Enum):
    ABSENT = "absent"
    LIVE = "live"
    TOMBSTONED = "tombstoned"


@dataclass(frozen=True, slots=True)
class Resolution:
    state: EntryState
    session: Session | None = None


class SessionRegistry:
    """Session id to live session or tombstone.

    Each id has its own lock; callers hold :meth:`locked` across a whole
    validate-then-mutate step so that two packets for the same session never
    interleave, while packets for different sessions proceed independently.
    """

    def __init__(self, max_tombstones: int = DEFAULT_MAX_TOMBSTONES):
        if max_tombstones < 0:
            raise ValueError("max_tombstones must be >= 0")
        self.max_tombstones = max_tombstones
        self._live: dict[int, Session] = {}
        self._tombstones: OrderedDict[int, None] = OrderedDict()
        self._locks: dict[int, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, session_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = self._locks[session_id] = threading.Lock()
            return lock

    @contextmanager
    def locked(self, session_id: int) -> Iterator[None]:
        with self._lock_for(session_id):
            yield

    def resolve(self, session_id: int) -> Resolution:
        with self._guard:
            session = self._live.get(session_id)
            if session is not None:
                return Resolution(EntryState.LIVE, session)
            if session_id in self._tombstones:
                return Resolution(EntryState.TOMBSTONED)
            return Resolution(EntryState.ABSENT)

    def create(
        self,
        session_id: int,
        *,
        peer_sequence: int,
        local_sequence: int,
        max_chunk: int | None = None,
    ) -> Session:
        with self._guard:
            if session_id in self._live:
                raise RegistryError(f"session {session_id:#06x} is already live")
            self._tombstones.pop(session_id, None)
            session = Session.establish(session_id, peer_sequence, local_sequence, max_chunk=max_chunk)
            self._live[session_id] = session
        logger.info("session %#06x established (peer isn=%#06x, local isn=%#06x)", session_id, peer_sequence, local_sequence)
        return session

    def close(self, session_id: int) -> None:
        with self._guard:
            session = self._live.pop(session_id, None)
            if session is None:
                if session_id not in self._tombstones:
                    raise RegistryError(f"session {session_id:#06x} was never opened")
                return
            session.close()
            self._tombstones[session_id] = None
            self._tombstones.move_to_end(session_id)
            while len(self._tombstones) > self.max_tombstones:
                evicted, _ = self._tombstones.popitem(last=False)
                logger.debug("tombstone %#06x evicted", evicted)
        logger.info("session %#06x closed", session_id)

    def sessions(self) -> list[Session]:
        with self._guard:
            return list(self._live.values())

    def __len__(self) -> int:
        with self._guard:
            return len(self._live)
