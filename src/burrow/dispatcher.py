from __future__ import annotations

import logging
from typing import Iterable

from .packet import MalformedPacket, Packet, PacketKind, describe
from .registry import EntryState, SessionRegistry
from .sequence import IsnSource, random_isn
from .session import Session

logger = logging.getLogger(__name__)


class StreamHandler:
    """Upper-layer hooks; the base class ignores everything."""

    def attach(self, dispatcher: Dispatcher) -> None:
        pass

    def session_opened(self, session: Session) -> None:
        pass

    def data_received(self, session: Session, data: bytes) -> None:
        pass

    def session_closed(self, session_id: int) -> None:
        pass

    def close(self) -> None:
        pass


class EchoHandler(StreamHandler):
    def data_received(self, session: Session, data: bytes) -> None:
        session.queue_outgoing(data)


class GreetingHandler(StreamHandler):
    """Queues ``greeting`` on newly opened sessions.

    With ``session_ids`` left as None every session is greeted, including one
    reopened under a recycled id. Given explicit ids, only the first session
    opened under each of them is greeted.
    """

    def __init__(self, greeting: bytes, session_ids: Iterable[int] | None = None):
        self.greeting = greeting
        self._pending = None if session_ids is None else set(session_ids)
        self._greeted: set[int] = set()

    def session_opened(self, session: Session) -> None:
        sid = session.session_id
        if self._pending is not None:
            if sid not in self._pending or sid in self._greeted:
                return
            self._greeted.add(sid)
        session.queue_outgoing(self.greeting)


class Dispatcher:
    def __init__(
        self,
        registry: SessionRegistry | None = None,
        *,
        handler: StreamHandler | None = None,
        isn: IsnSource = random_isn,
        max_chunk: int | None = None,
    ):
        if max_chunk is not None and max_chunk < 0:
            raise ValueError("max_chunk must be >= 0")
        self.registry = registry if registry is not None else SessionRegistry()
        self.handler = handler or StreamHandler()
        self.isn = isn
        self.max_chunk = max_chunk
        self.handler.attach(self)

    def dispatch(self, packet: Packet) -> Packet | None:
        with self.registry.locked(packet.session_id):
            if packet.kind == PacketKind.HANDSHAKE:
                reply = self._on_handshake(packet)
            elif packet.kind == PacketKind.DATA:
                reply = self._on_data(packet)
            else:
                reply = self._on_teardown(packet)
        logger.debug("in: %s -> out: %s", describe(packet), describe(reply))
        return reply

    def dispatch_bytes(self, raw: bytes) -> bytes | None:
        try:
            packet = Packet.from_bytes(raw)
        except MalformedPacket as e:
            logger.warning("dropping malformed packet (%d bytes): %s", len(raw), e)
            return None
        reply = self.dispatch(packet)
        return None if reply is None else reply.to_bytes()

    def send(self, session_id: int, data: bytes) -> bool:
        """Queue ``data`` on a live session from outside the dispatch path.

        Returns False when no live session holds ``session_id``.
        """
        with self.registry.locked(session_id):
            session = self.registry.resolve(session_id).session
            if session is None:
                return False
            session.queue_outgoing(data)
        return True

    def _on_handshake(self, packet: Packet) -> Packet | None:
        found = self.registry.resolve(packet.session_id)
        if found.state is EntryState.LIVE:
            logger.debug("session %#06x: duplicate handshake ignored", packet.session_id)
            return None

        session = self.registry.create(
            packet.session_id,
            peer_sequence=packet.initial_sequence,
            local_sequence=self.isn(),
            max_chunk=self.max_chunk,
        )
        self.handler.session_opened(session)
        return session.handshake_reply(packet.correlation_id)

    def _on_data(self, packet: Packet) -> Packet | None:
        found = self.registry.resolve(packet.session_id)
        if found.session is None:
            logger.debug("session %#06x: data for %s session; tearing down", packet.session_id, found.state.value)
            return Packet.teardown(packet.correlation_id, packet.session_id)

        session = found.session
        return session.receive(packet, lambda data: self.handler.data_received(session, data))

    def _on_teardown(self, packet: Packet) -> Packet | None:
        found = self.registry.resolve(packet.session_id)
        if found.state is EntryState.TOMBSTONED:
            logger.debug("session %#06x: teardown for closed session ignored", packet.session_id)
            return None
        if found.state is EntryState.ABSENT:
            logger.debug("session %#06x: teardown for unknown session", packet.session_id)
            return Packet.teardown(packet.correlation_id, packet.session_id)

        self.registry.close(packet.session_id)
        self.handler.session_closed(packet.session_id)
        return Packet.teardown(packet.correlation_id, packet.session_id)
