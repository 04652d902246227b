from __future__ import annotations

import threading

import pytest

from burrow.registry import EntryState, RegistryError, SessionRegistry
from burrow.session import SessionState


def test_resolve_absent():
    r = SessionRegistry()
    found = r.resolve(1)
    assert found.state is EntryState.ABSENT
    assert found.session is None


def test_create_and_resolve_live():
    r = SessionRegistry()
    s = r.create(1, peer_sequence=10, local_sequence=20)
    found = r.resolve(1)
    assert found.state is EntryState.LIVE
    assert found.session is s
    assert len(r) == 1
    assert r.sessions() == [s]


def test_create_over_live_fails():
    r = SessionRegistry()
    r.create(1, peer_sequence=0, local_sequence=0)
    with pytest.raises(RegistryError):
        r.create(1, peer_sequence=0, local_sequence=0)


def test_close_tombstones_and_is_idempotent():
    r = SessionRegistry()
    s = r.create(1, peer_sequence=0, local_sequence=0)
    r.close(1)
    assert s.state is SessionState.CLOSED
    assert r.resolve(1).state is EntryState.TOMBSTONED
    r.close(1)
    assert r.resolve(1).state is EntryState.TOMBSTONED
    assert len(r) == 0


def test_close_never_opened_fails():
    with pytest.raises(RegistryError):
        SessionRegistry().close(5)


def test_create_over_tombstone_starts_fresh():
    r = SessionRegistry()
    old = r.create(1, peer_sequence=1, local_sequence=2)
    old.queue_outgoing(b"stale")
    r.close(1)
    new = r.create(1, peer_sequence=3, local_sequence=4)
    assert new is not old
    assert r.resolve(1).state is EntryState.LIVE
    assert not new.outgoing
    assert (new.peer_sequence, new.local_sequence_base) == (3, 4)


def test_tombstones_are_bounded():
    r = SessionRegistry(max_tombstones=2)
    for sid in (1, 2, 3):
        r.create(sid, peer_sequence=0, local_sequence=0)
        r.close(sid)
    assert r.resolve(1).state is EntryState.ABSENT
    assert r.resolve(2).state is EntryState.TOMBSTONED
    assert r.resolve(3).state is EntryState.TOMBSTONED


def test_locks_are_per_session():
    r = SessionRegistry()
    blocked = []

    def other(sid):
        lock = r._lock_for(sid)
        acquired = lock.acquire(blocking=False)
        blocked.append(not acquired)
        if acquired:
            lock.release()

    with r.locked(1):
        for sid in (1, 2):
            t = threading.Thread(target=other, args=(sid,))
            t.start()
            t.join()

    assert blocked == [True, False]
    with r.locked(1):
        pass
