"""Embedding packets in DNS names.

A packet is hex-encoded, split into labels of at most 63 characters and
placed in front of the tunnel domain. Replies travel back as a single hex
TXT string.
"""

from __future__ import annotations

import binascii

from .constants import MAX_DNS_LENGTH, MAX_FIELD_LENGTH

MAX_REPLY_LENGTH = MAX_DNS_LENGTH // 2


class CarrierError(ValueError):
    """Raised when a packet cannot be carried by, or recovered from, a name."""


def _normalize(domain: str) -> str:
    return domain.strip(".").lower()


def max_packet_length(domain: str) -> int:
    """Largest packet, in bytes, that fits in a query name under ``domain``."""
    used = 1 + len(_normalize(domain)) + MAX_DNS_LENGTH // MAX_FIELD_LENGTH + 1
    return max(0, (MAX_DNS_LENGTH - used) // 2)


def encode_name(data: bytes, domain: str) -> str:
    if len(data) > max_packet_length(domain):
        raise CarrierError(f"{len(data)} bytes do not fit in a name under {domain!r}")
    encoded = data.hex()
    labels = [encoded[i : i + MAX_FIELD_LENGTH] for i in range(0, len(encoded), MAX_FIELD_LENGTH)]
    return ".".join(labels + [_normalize(domain)])


def decode_name(qname: str, domain: str) -> bytes:
    name = qname.strip(".").lower()
    suffix = _normalize(domain)
    if name == suffix:
        return b""
    if not name.endswith("." + suffix):
        raise CarrierError(f"{qname!r} is not under {domain!r}")
    encoded = name[: -len(suffix) - 1].replace(".", "")
    try:
        return binascii.unhexlify(encoded)
    except (binascii.Error, ValueError) as e:
        raise CarrierError(f"bad hex in {qname!r}: {e}") from e
