from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Protocol

from .dispatcher import Dispatcher
from .packet import Packet, describe

logger = logging.getLogger(__name__)


class ConnectionClosed(Exception):
    """Raised by a transport when no more input will arrive."""


class Transport(Protocol):
    def receive_next(self) -> Packet: ...

    def respond(self, packet: Packet | None) -> None: ...


@dataclass(slots=True)
class ServeStats:
    packets_in: int = 0
    replies: int = 0
    silent: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)


def serve(transport: Transport, dispatcher: Dispatcher) -> ServeStats:
    """Feed packets from ``transport`` through ``dispatcher`` until it closes."""
    stats = ServeStats()
    while True:
        try:
            packet = transport.receive_next()
        except ConnectionClosed as e:
            logger.info("transport closed: %s", e)
            break

        stats.packets_in += 1
        reply = dispatcher.dispatch(packet)
        if reply is None:
            stats.silent += 1
        else:
            stats.replies += 1
        transport.respond(reply)

    stats.end_ts = time.monotonic()
    return stats


@dataclass(frozen=True, slots=True)
class ScriptStep:
    name: str
    send: Packet
    expect: Packet | None


@dataclass(slots=True)
class ScriptOutcome:
    passed: int = 0
    failed: int = 0
    failures: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.passed + self.failed

    @property
    def ok(self) -> bool:
        return self.failed == 0


class ScriptedTransport:
    """Plays a fixed list of requests and checks every reply against the script.

    Replies are compared by their encoded bytes, so a retransmission only
    passes if it is bit-identical to what the script expects.
    """

    def __init__(self, steps: Iterable[ScriptStep]):
        self._steps: deque[ScriptStep] = deque(steps)
        self._current: ScriptStep | None = None
        self.outcome = ScriptOutcome()

    def receive_next(self) -> Packet:
        if self._current is not None:
            raise RuntimeError("previous request has not been answered")
        if not self._steps:
            raise ConnectionClosed("script exhausted")
        self._current = self._steps.popleft()
        return self._current.send

    def respond(self, packet: Packet | None) -> None:
        step = self._current
        if step is None:
            raise RuntimeError("respond() called without a pending request")
        self._current = None

        expected = None if step.expect is None else step.expect.to_bytes()
        received = None if packet is None else packet.to_bytes()
        if expected == received:
            self.outcome.passed += 1
            logger.info("SUCCESS: %s", step.name)
            return

        self.outcome.failed += 1
        report = f"{step.name}\n >> Expected: {describe(step.expect)}\n >> Received: {describe(packet)}"
        self.outcome.failures.append(report)
        logger.error("FAILURE: %s", report)
