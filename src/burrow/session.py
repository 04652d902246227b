"""Per-session protocol state.

A :class:`Session` holds the bookkeeping for one conversation and decides how
to answer each data packet. It never touches a transport: the dispatcher
hands it packets and sends back whatever it returns.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable

from .constants import SEQ_MASK
from .packet import Packet, PacketKind
from .sequence import seq_add, seq_distance, seq_in_window

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    ESTABLISHED = "established"
    CLOSED = "closed"


class Verdict(enum.Enum):
    ACCEPT = "accept"
    SEQUENCE_MISMATCH = "sequence-mismatch"
    ACKNOWLEDGMENT_MISMATCH = "acknowledgment-mismatch"


@dataclass(slots=True)
class Session:
    session_id: int
    peer_sequence: int
    local_sequence: int
    local_sequence_base: int
    max_chunk: int | None = None
    state: SessionState = SessionState.ESTABLISHED
    outgoing: bytearray = field(default_factory=bytearray)
    last_sent: Packet | None = None

    @classmethod
    def establish(
        cls,
        session_id: int,
        peer_isn: int,
        local_isn: int,
        *,
        max_chunk: int | None = None,
    ) -> "Session":
        return cls(
            session_id=session_id,
            peer_sequence=peer_isn,
            local_sequence=local_isn,
            local_sequence_base=local_isn,
            max_chunk=max_chunk,
        )

    @property
    def established(self) -> bool:
        return self.state is SessionState.ESTABLISHED

    @property
    def unacknowledged(self) -> int:
        """Bytes offered to the peer and not yet acknowledged."""
        return seq_distance(self.local_sequence_base, self.local_sequence)

    def queue_outgoing(self, data: bytes) -> None:
        if not self.established:
            raise ValueError(f"session {self.session_id:#06x} is closed")
        self.outgoing.extend(data)

    def handshake_reply(self, correlation_id: int) -> Packet:
        reply = Packet.handshake(correlation_id, self.session_id, self.local_sequence_base)
        self.last_sent = reply
        return reply

    def check(self, packet: Packet) -> Verdict:
        if packet.sequence != self.peer_sequence:
            return Verdict.SEQUENCE_MISMATCH
        if not seq_in_window(packet.acknowledgment, self.local_sequence_base, len(self.outgoing)):
            return Verdict.ACKNOWLEDGMENT_MISMATCH
        return Verdict.ACCEPT

    def receive(self, packet: Packet, deliver: Callable[[bytes], None] | None = None) -> Packet | None:
        """Apply one data packet and return the reply to send.

        A packet failing the sequence or acknowledgment check changes nothing
        and is answered with ``last_sent`` as-is. An accepted packet has its
        body handed to ``deliver`` before any counter moves: if ``deliver``
        raises, the session is untouched and the peer's retransmission is
        accepted later. Anything queued from ``deliver`` rides along in the
        same reply.
        """
        if packet.kind != PacketKind.DATA:
            raise ValueError(f"expected a data packet, got {packet.kind.name}")

        verdict = self.check(packet)
        if verdict is not Verdict.ACCEPT:
            logger.debug(
                "session %#06x: %s (seq=%#06x ack=%#06x, expected seq=%#06x base=%#06x pending=%d); retransmitting",
                self.session_id,
                verdict.value,
                packet.sequence,
                packet.acknowledgment,
                self.peer_sequence,
                self.local_sequence_base,
                len(self.outgoing),
            )
            return self.last_sent

        if packet.body and deliver is not None:
            deliver(packet.body)
        self.peer_sequence = seq_add(self.peer_sequence, len(packet.body))
        self.acknowledge(packet.acknowledgment)
        return self.offer(packet.correlation_id)

    def acknowledge(self, ack: int) -> None:
        acked = seq_distance(self.local_sequence_base, ack)
        del self.outgoing[:acked]
        self.local_sequence_base = ack
        if seq_distance(self.local_sequence_base, self.local_sequence) > len(self.outgoing):
            self.local_sequence = self.local_sequence_base

    def offer(self, correlation_id: int) -> Packet:
        """Compose the next data packet from the front of the outgoing buffer."""
        limit = len(self.outgoing) if self.max_chunk is None else self.max_chunk
        # a body longer than the sequence space could never be acknowledged
        limit = min(limit, SEQ_MASK)
        body = bytes(self.outgoing[:limit])
        reply = Packet.data(correlation_id, self.session_id, self.local_sequence_base, self.peer_sequence, body)
        self.local_sequence = seq_add(self.local_sequence_base, len(body))
        self.last_sent = reply
        return reply

    def close(self) -> None:
        self.state = SessionState.CLOSED
        self.outgoing.clear()
