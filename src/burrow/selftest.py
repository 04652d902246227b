"""Scripted end-to-end conversation against a fresh dispatcher.

The script plays the client side of two sessions, including duplicate,
out-of-order and badly acknowledged packets, and checks every reply the
server produces. It doubles as a smoke test for a deployment.
"""

from __future__ import annotations

from .dispatcher import Dispatcher, GreetingHandler
from .packet import Packet
from .sequence import fixed_isn, seq_add
from .transport import ScriptedTransport, ScriptOutcome, ScriptStep, serve

MY_DATA = b"this is MY_DATA"
MY_DATA2 = b"this is MY_DATA2"
MY_DATA3 = b"this is MY_DATA3"
THEIR_DATA = b"This is THEIR_DATA"

THEIR_ISN = 0x4444
MY_ISN = 0x3333

SESSION_ID = 0x1234
OTHER_SESSION_ID = 0x4321
REUSED_SESSION_ID = 0x4411

PACKET_ID = 0x0101


def _syn(sid: int, isn: int) -> Packet:
    return Packet.handshake(PACKET_ID, sid, isn)


def _msg(sid: int, seq: int, ack: int, body: bytes = b"") -> Packet:
    return Packet.data(PACKET_ID, sid, seq & 0xFFFF, ack & 0xFFFF, body)


def _fin(sid: int) -> Packet:
    return Packet.teardown(PACKET_ID, sid)


def build_scenario() -> list[ScriptStep]:
    steps: list[ScriptStep] = []

    def add(name: str, send: Packet, expect: Packet | None) -> None:
        steps.append(ScriptStep(name, send, expect))

    my_seq = MY_ISN
    their_seq = THEIR_ISN

    add("Data for an unknown session is answered with a teardown", _msg(SESSION_ID, my_seq, their_seq, MY_DATA), _fin(SESSION_ID))
    add("Teardown for an unknown session is answered with a teardown", _fin(SESSION_ID), _fin(SESSION_ID))
    add(f"Initial handshake (isn {my_seq:#06x} => {their_seq:#06x})", _syn(SESSION_ID, my_seq), _syn(SESSION_ID, their_seq))
    add("Duplicate handshake is ignored", _syn(SESSION_ID, 0x3333), None)
    add("Handshake for a second id creates a new session", _syn(OTHER_SESSION_ID, 0x5555), _syn(OTHER_SESSION_ID, their_seq))

    add(
        "Sending some initial data",
        _msg(SESSION_ID, my_seq, their_seq, MY_DATA),
        _msg(SESSION_ID, their_seq, my_seq + len(MY_DATA), THEIR_DATA),
    )
    my_seq += len(MY_DATA)
    last = _msg(SESSION_ID, their_seq, my_seq, THEIR_DATA)

    add("Sequence too high by one triggers a re-send", _msg(SESSION_ID, my_seq + 1, 0, b"bad seq"), last)
    add("Sequence way too low triggers a re-send", _msg(SESSION_ID, my_seq - 100, 0, b"bad seq"), last)
    add("Sequence way too high triggers a re-send", _msg(SESSION_ID, my_seq + 100, 0, b"bad seq"), last)

    add(
        "Acknowledging nothing new while sending more data",
        _msg(SESSION_ID, my_seq, their_seq, MY_DATA2),
        _msg(SESSION_ID, their_seq, my_seq + len(MY_DATA2), THEIR_DATA),
    )
    my_seq += len(MY_DATA2)
    last = _msg(SESSION_ID, their_seq, my_seq, THEIR_DATA)

    add("A very bad ack triggers a re-send", _msg(SESSION_ID, my_seq, their_seq ^ 0xFFFF), last)
    add("An ack one below the window triggers a re-send", _msg(SESSION_ID, my_seq, their_seq - 1), last)
    add(
        "An ack one past the window triggers a re-send",
        _msg(SESSION_ID, my_seq, their_seq + len(THEIR_DATA) + 1),
        last,
    )

    add(
        "Acknowledging the first byte offers the rest",
        _msg(SESSION_ID, my_seq, their_seq + 1),
        _msg(SESSION_ID, their_seq + 1, my_seq, THEIR_DATA[1:]),
    )
    add(
        "Acknowledging the first byte again offers the rest again",
        _msg(SESSION_ID, my_seq, their_seq + 1),
        _msg(SESSION_ID, their_seq + 1, my_seq, THEIR_DATA[1:]),
    )
    add(
        "Still acknowledging the first byte while sending more data",
        _msg(SESSION_ID, my_seq, their_seq + 1, MY_DATA3),
        _msg(SESSION_ID, their_seq + 1, my_seq + len(MY_DATA3), THEIR_DATA[1:]),
    )
    my_seq += len(MY_DATA3)

    their_seq += len(THEIR_DATA)
    add(
        "Acknowledging everything leaves nothing to send",
        _msg(SESSION_ID, my_seq, their_seq),
        _msg(SESSION_ID, their_seq, my_seq),
    )
    add("A blank data packet gets a blank reply", _msg(SESSION_ID, my_seq, their_seq), _msg(SESSION_ID, their_seq, my_seq))
    add("Handshake before teardown is ignored", _syn(SESSION_ID, my_seq), None)
    add("Teardown is answered with a teardown", _fin(SESSION_ID), _fin(SESSION_ID))

    my_seq = seq_add(MY_ISN, -1000)
    their_seq = THEIR_ISN
    add("A closed id can be reused", _syn(SESSION_ID, my_seq), _syn(SESSION_ID, their_seq))
    add(
        "Data in the reused session starts from the new sequence numbers",
        _msg(SESSION_ID, my_seq, their_seq, MY_DATA),
        _msg(SESSION_ID, their_seq, my_seq + len(MY_DATA)),
    )

    add("Handshake for a third id", _syn(REUSED_SESSION_ID, my_seq), _syn(REUSED_SESSION_ID, their_seq))
    add(
        "Data in the third session",
        _msg(REUSED_SESSION_ID, my_seq, their_seq, MY_DATA),
        _msg(REUSED_SESSION_ID, their_seq, my_seq + len(MY_DATA)),
    )

    add("Teardown of the reused session", _fin(SESSION_ID), _fin(SESSION_ID))
    add("Teardown of the third session", _fin(REUSED_SESSION_ID), _fin(REUSED_SESSION_ID))
    add("Teardown of an already closed session is ignored", _fin(SESSION_ID), None)
    add("Data for an already closed session is answered with a teardown", _msg(SESSION_ID, my_seq, their_seq), _fin(SESSION_ID))

    return steps


def run_selftest() -> ScriptOutcome:
    dispatcher = Dispatcher(
        handler=GreetingHandler(THEIR_DATA, session_ids=[SESSION_ID]),
        isn=fixed_isn(THEIR_ISN),
    )
    transport = ScriptedTransport(build_scenario())
    serve(transport, dispatcher)
    return transport.outcome
