from __future__ import annotations

HEADER_FORMAT = "!HHB"  # correlation_id, session_id, kind
HANDSHAKE_FORMAT = "!H"  # initial_sequence
DATA_FORMAT = "!HH"  # sequence, acknowledgment
REASON_FORMAT = "!H"

HANDSHAKE = 0
DATA = 1
TEARDOWN = 2

SEQ_MODULUS = 0x10000
SEQ_MASK = 0xFFFF

MAX_FIELD_LENGTH = 63
MAX_DNS_LENGTH = 255

DEFAULT_DNS_PORT = 53
DEFAULT_TIMEOUT_MS = 0
DEFAULT_MAX_TOMBSTONES = 4096
