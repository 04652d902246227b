from __future__ import annotations

import logging
import random
import socket
import time
from dataclasses import dataclass
from typing import Tuple

logger = logging.getLogger(__name__)

Address = Tuple[str, int]


@dataclass(frozen=True, slots=True)
class Impairment:
    """Simulated loss and latency applied to inbound datagrams."""

    loss_rate: float = 0.0
    delay_ms: int = 0

    def should_drop(self) -> bool:
        return self.loss_rate > 0 and random.random() < self.loss_rate

    def sleep_if_needed(self) -> None:
        if self.delay_ms > 0:
            time.sleep(self.delay_ms / 1000.0)


class UdpEndpoint:
    def __init__(self, sock: socket.socket, impairment: Impairment | None = None):
        self.sock = sock
        self.impairment = impairment or Impairment()

    @classmethod
    def listening(
        cls,
        host: str,
        port: int,
        timeout_ms: int = 0,
        impairment: Impairment | None = None,
    ) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.bind((host, port))
        if timeout_ms > 0:
            sock.settimeout(timeout_ms / 1000.0)
        logger.info("listening on %s:%d", *sock.getsockname())
        return cls(sock, impairment)

    @classmethod
    def sending(cls, timeout_ms: int = 0) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        if timeout_ms > 0:
            sock.settimeout(timeout_ms / 1000.0)
        return cls(sock)

    @property
    def address(self) -> Address:
        return self.sock.getsockname()

    def sendto(self, data: bytes, addr: Address) -> None:
        self.sock.sendto(data, addr)

    def recvfrom(self, bufsize: int = 65535) -> Tuple[bytes, Address]:
        while True:
            data, addr = self.sock.recvfrom(bufsize)
            if self.impairment.should_drop():
                logger.debug("dropped inbound %d bytes from %s:%d", len(data), *addr)
                continue
            self.impairment.sleep_if_needed()
            return data, addr

    def close(self) -> None:
        self.sock.close()
