from __future__ import annotations

import enum
import struct
from dataclasses import dataclass

from .constants import (
    DATA,
    DATA_FORMAT,
    HANDSHAKE,
    HANDSHAKE_FORMAT,
    HEADER_FORMAT,
    REASON_FORMAT,
    SEQ_MASK,
    TEARDOWN,
)

HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
HANDSHAKE_SIZE = HEADER_SIZE + struct.calcsize(HANDSHAKE_FORMAT)
DATA_HEADER_SIZE = HEADER_SIZE + struct.calcsize(DATA_FORMAT)
REASON_SIZE = struct.calcsize(REASON_FORMAT)


class MalformedPacket(ValueError):
    """Raised when a buffer cannot be decoded into a packet."""


class PacketKind(enum.IntEnum):
    HANDSHAKE = HANDSHAKE
    DATA = DATA
    TEARDOWN = TEARDOWN


def _check_u16(name: str, value: int) -> None:
    if not 0 <= value <= SEQ_MASK:
        raise ValueError(f"{name} must fit in 16 bits, got {value!r}")


@dataclass(frozen=True, slots=True)
class Packet:
    correlation_id: int
    session_id: int
    kind: PacketKind
    initial_sequence: int = 0
    sequence: int = 0
    acknowledgment: int = 0
    body: bytes = b""
    reason: int | None = None

    def __post_init__(self) -> None:
        _check_u16("correlation_id", self.correlation_id)
        _check_u16("session_id", self.session_id)
        _check_u16("initial_sequence", self.initial_sequence)
        _check_u16("sequence", self.sequence)
        _check_u16("acknowledgment", self.acknowledgment)
        if self.reason is not None:
            _check_u16("reason", self.reason)
        if not isinstance(self.kind, PacketKind):
            object.__setattr__(self, "kind", PacketKind(self.kind))
        if self.kind != PacketKind.DATA and self.body:
            raise ValueError("only data packets carry a body")

    def to_bytes(self) -> bytes:
        header = struct.pack(HEADER_FORMAT, self.correlation_id, self.session_id, int(self.kind))
        if self.kind == PacketKind.HANDSHAKE:
            return header + struct.pack(HANDSHAKE_FORMAT, self.initial_sequence)
        if self.kind == PacketKind.DATA:
            return header + struct.pack(DATA_FORMAT, self.sequence, self.acknowledgment) + self.body
        if self.reason is not None:
            return header + struct.pack(REASON_FORMAT, self.reason)
        return header

    @staticmethod
    def from_bytes(raw: bytes) -> "Packet":
        if len(raw) < HEADER_SIZE:
            raise MalformedPacket(f"packet too short for header: {len(raw)} bytes")

        correlation_id, session_id, tag = struct.unpack(HEADER_FORMAT, raw[:HEADER_SIZE])
        try:
            kind = PacketKind(tag)
        except ValueError:
            raise MalformedPacket(f"unknown packet kind: {tag:#04x}") from None

        if kind == PacketKind.HANDSHAKE:
            if len(raw) < HANDSHAKE_SIZE:
                raise MalformedPacket(f"handshake too short: {len(raw)} bytes")
            (isn,) = struct.unpack(HANDSHAKE_FORMAT, raw[HEADER_SIZE:HANDSHAKE_SIZE])
            return Packet.handshake(correlation_id, session_id, isn)

        if kind == PacketKind.DATA:
            if len(raw) < DATA_HEADER_SIZE:
                raise MalformedPacket(f"data packet too short: {len(raw)} bytes")
            seq, ack = struct.unpack(DATA_FORMAT, raw[HEADER_SIZE:DATA_HEADER_SIZE])
            return Packet.data(correlation_id, session_id, seq, ack, bytes(raw[DATA_HEADER_SIZE:]))

        reason = None
        if len(raw) >= HEADER_SIZE + REASON_SIZE:
            (reason,) = struct.unpack(REASON_FORMAT, raw[HEADER_SIZE : HEADER_SIZE + REASON_SIZE])
        return Packet.teardown(correlation_id, session_id, reason)

    @staticmethod
    def handshake(correlation_id: int, session_id: int, initial_sequence: int) -> "Packet":
        return Packet(
            correlation_id=correlation_id,
            session_id=session_id,
            kind=PacketKind.HANDSHAKE,
            initial_sequence=initial_sequence,
        )

    @staticmethod
    def data(correlation_id: int, session_id: int, sequence: int, acknowledgment: int, body: bytes = b"") -> "Packet":
        return Packet(
            correlation_id=correlation_id,
            session_id=session_id,
            kind=PacketKind.DATA,
            sequence=sequence,
            acknowledgment=acknowledgment,
            body=bytes(body),
        )

    @staticmethod
    def teardown(correlation_id: int, session_id: int, reason: int | None = None) -> "Packet":
        return Packet(
            correlation_id=correlation_id,
            session_id=session_id,
            kind=PacketKind.TEARDOWN,
            reason=reason,
        )


def encode(packet: Packet) -> bytes:
    return packet.to_bytes()


def decode(raw: bytes) -> Packet:
    return Packet.from_bytes(raw)


def describe(packet: Packet | None) -> str:
    """One-line summary of a packet for logs and failure reports."""
    if packet is None:
        return "<no packet>"
    prefix = f"{packet.kind.name} id={packet.correlation_id:#06x} session={packet.session_id:#06x}"
    if packet.kind == PacketKind.HANDSHAKE:
        return f"{prefix} isn={packet.initial_sequence:#06x}"
    if packet.kind == PacketKind.DATA:
        return f"{prefix} seq={packet.sequence:#06x} ack={packet.acknowledgment:#06x} body={packet.body!r}"
    if packet.reason is not None:
        return f"{prefix} reason={packet.reason}"
    return prefix
