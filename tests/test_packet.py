from __future__ import annotations

import pytest

from burrow.packet import MalformedPacket, Packet, PacketKind, decode, describe, encode


def test_roundtrip_handshake():
    p = Packet.handshake(0xBEEF, 0x1234, 0x3333)
    raw = p.to_bytes()
    assert raw == bytes.fromhex("beef" "1234" "00" "3333")
    assert Packet.from_bytes(raw) == p


def test_roundtrip_data():
    p = Packet.data(1, 0x1234, 0xFFFF, 0, b"hello")
    q = decode(encode(p))
    assert q == p
    assert q.kind is PacketKind.DATA
    assert q.body == b"hello"


def test_roundtrip_empty_data():
    p = Packet.data(7, 2, 3, 4)
    raw = encode(p)
    assert len(raw) == 9
    assert decode(raw) == p


def test_roundtrip_teardown_with_and_without_reason():
    bare = Packet.teardown(5, 6)
    assert encode(bare) == bytes.fromhex("0005000602")
    assert decode(encode(bare)) == bare

    with_reason = Packet.teardown(5, 6, reason=9)
    assert decode(encode(with_reason)) == with_reason
    assert decode(encode(with_reason)).reason == 9


def test_too_short_for_header():
    with pytest.raises(MalformedPacket):
        Packet.from_bytes(b"\x00\x01\x00\x02")


@pytest.mark.parametrize(
    "raw",
    [
        bytes.fromhex("0001000200" "33"),
        bytes.fromhex("0001000201" "3333" "44"),
    ],
)
def test_too_short_for_kind(raw):
    with pytest.raises(MalformedPacket):
        decode(raw)


def test_unknown_kind():
    with pytest.raises(MalformedPacket):
        decode(bytes.fromhex("00010002ff"))


def test_malformed_is_a_value_error():
    with pytest.raises(ValueError):
        decode(b"")


def test_field_ranges_are_checked():
    with pytest.raises(ValueError):
        Packet.handshake(0, 0x10000, 0)
    with pytest.raises(ValueError):
        Packet.data(0, 0, -1, 0)


def test_only_data_carries_a_body():
    with pytest.raises(ValueError):
        Packet(correlation_id=0, session_id=0, kind=PacketKind.TEARDOWN, body=b"x")


def test_packets_are_immutable():
    p = Packet.teardown(1, 2)
    with pytest.raises(AttributeError):
        p.session_id = 3  # type: ignore[misc]


def test_describe():
    assert describe(None) == "<no packet>"
    assert "seq=0x0001" in describe(Packet.data(0, 0, 1, 2, b"x"))
    assert "isn=0x3333" in describe(Packet.handshake(0, 0, 0x3333))
