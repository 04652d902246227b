from __future__ import annotations

import pytest

from burrow.carrier import MAX_REPLY_LENGTH, CarrierError, decode_name, encode_name, max_packet_length

DOMAIN = "tunnel.example.com"


def test_encode_splits_labels():
    data = bytes(range(40))
    name = encode_name(data, DOMAIN)
    labels = name.split(".")
    assert labels[-3:] == ["tunnel", "example", "com"]
    assert all(len(label) <= 63 for label in labels)
    assert len(labels[0]) == 63
    assert decode_name(name, DOMAIN) == data


def test_decode_accepts_trailing_dot_and_case():
    assert decode_name("AABB.Tunnel.Example.COM.", DOMAIN) == b"\xaa\xbb"


def test_largest_packet_fits_a_name():
    n = max_packet_length(DOMAIN)
    name = encode_name(b"\xff" * n, DOMAIN)
    assert len(name) <= 255
    with pytest.raises(CarrierError):
        encode_name(b"\xff" * (n + 1), DOMAIN)


def test_decode_errors():
    with pytest.raises(CarrierError):
        decode_name("aabb.other.com", DOMAIN)
    with pytest.raises(CarrierError):
        decode_name("zz.tunnel.example.com", DOMAIN)
    with pytest.raises(ValueError):
        decode_name("abc.tunnel.example.com", DOMAIN)


def test_bare_domain_is_empty():
    assert decode_name(DOMAIN, DOMAIN) == b""


def test_reply_limit():
    assert MAX_REPLY_LENGTH * 2 <= 255
