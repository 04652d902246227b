from __future__ import annotations

import logging

from dnslib import QTYPE, RCODE, RR, TXT, DNSRecord
from dnslib.dns import DNSError

from .carrier import decode_name, encode_name
from .constants import MAX_DNS_LENGTH
from .net import Address, UdpEndpoint
from .packet import Packet
from .transport import ConnectionClosed

logger = logging.getLogger(__name__)


def build_query(packet: Packet, domain: str) -> DNSRecord:
    """Wrap ``packet`` in a TXT question the way a tunnel client sends it."""
    return DNSRecord.question(encode_name(packet.to_bytes(), domain), "TXT")


def decode_answer(text: str, domain: str) -> Packet | None:
    """Recover the packet from a TXT answer; the bare domain means no reply."""
    if text.strip(".").lower() == domain.strip(".").lower():
        return None
    return Packet.from_bytes(bytes.fromhex(text))


class DnsTransport:
    """Serves tunnel packets carried in DNS TXT queries.

    Every query gets exactly one answer. A query whose name does not decode to
    a packet is answered with NXDOMAIN and never reaches the dispatcher.
    """

    def __init__(self, endpoint: UdpEndpoint, domain: str):
        self.endpoint = endpoint
        self.domain = domain.strip(".").lower()
        self.skipped = 0
        self._pending: tuple[DNSRecord, Address] | None = None

    def receive_next(self) -> Packet:
        while True:
            try:
                raw, addr = self.endpoint.recvfrom()
            except TimeoutError as e:
                raise ConnectionClosed("idle timeout") from e
            except OSError as e:
                raise ConnectionClosed(str(e)) from e

            try:
                query = DNSRecord.parse(raw)
            except DNSError as e:
                self.skipped += 1
                logger.warning("unparseable DNS message from %s:%d: %s", *addr, e)
                continue

            if query.header.qr or not query.questions:
                self.skipped += 1
                logger.debug("ignoring non-query DNS message from %s:%d", *addr)
                continue

            qname = str(query.q.qname)
            try:
                packet = Packet.from_bytes(decode_name(qname, self.domain))
            except ValueError as e:
                self.skipped += 1
                logger.debug("no tunnel packet in %s: %s", qname, e)
                reply = query.reply()
                reply.header.rcode = RCODE.NXDOMAIN
                self.endpoint.sendto(reply.pack(), addr)
                continue

            logger.debug("query %s from %s:%d", qname, *addr)
            self._pending = (query, addr)
            return packet

    def respond(self, packet: Packet | None) -> None:
        if self._pending is None:
            raise RuntimeError("respond() called without a pending query")
        query, addr = self._pending
        self._pending = None

        text = self.domain if packet is None else packet.to_bytes().hex()
        strings = [text[i : i + MAX_DNS_LENGTH] for i in range(0, len(text), MAX_DNS_LENGTH)]
        reply = query.reply()
        reply.add_answer(RR(query.q.qname, QTYPE.TXT, ttl=0, rdata=TXT(strings)))
        self.endpoint.sendto(reply.pack(), addr)
