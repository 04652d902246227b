from __future__ import annotations

import pytest
from dnslib import QTYPE, RCODE, DNSRecord

from burrow.dispatcher import Dispatcher, EchoHandler
from burrow.dns import DnsTransport, build_query, decode_answer
from burrow.net import UdpEndpoint
from burrow.packet import Packet
from burrow.sequence import fixed_isn
from burrow.transport import ConnectionClosed, serve

DOMAIN = "t.example.org"


@pytest.fixture
def endpoints():
    server = UdpEndpoint.listening("127.0.0.1", 0, timeout_ms=2000)
    client = UdpEndpoint.sending(timeout_ms=2000)
    yield server, client
    server.close()
    client.close()


def send_query(client: UdpEndpoint, server: UdpEndpoint, query: DNSRecord) -> DNSRecord:
    client.sendto(query.pack(), server.address)
    return query


def read_reply(client: UdpEndpoint) -> DNSRecord:
    raw, _ = client.recvfrom()
    return DNSRecord.parse(raw)


def answer_text(reply: DNSRecord) -> str:
    assert reply.rr[0].rtype == QTYPE.TXT
    return b"".join(reply.rr[0].rdata.data).decode()


def test_query_roundtrip_through_transport(endpoints):
    server, client = endpoints
    transport = DnsTransport(server, DOMAIN)
    dispatcher = Dispatcher(handler=EchoHandler(), isn=fixed_isn(0x4444))

    query = send_query(client, server, build_query(Packet.handshake(1, 0x1234, 0x3333), DOMAIN))
    packet = transport.receive_next()
    assert packet == Packet.handshake(1, 0x1234, 0x3333)
    transport.respond(dispatcher.dispatch(packet))

    reply = read_reply(client)
    assert reply.header.id == query.header.id
    assert decode_answer(answer_text(reply), DOMAIN) == Packet.handshake(1, 0x1234, 0x4444)

    send_query(client, server, build_query(Packet.data(2, 0x1234, 0x3333, 0x4444, b"ping"), DOMAIN))
    transport.respond(dispatcher.dispatch(transport.receive_next()))
    assert decode_answer(answer_text(read_reply(client)), DOMAIN) == Packet.data(2, 0x1234, 0x4444, 0x3337, b"ping")


def test_no_reply_is_a_nil_answer(endpoints):
    server, client = endpoints
    transport = DnsTransport(server, DOMAIN)

    send_query(client, server, build_query(Packet.teardown(1, 7), DOMAIN))
    transport.receive_next()
    transport.respond(None)

    text = answer_text(read_reply(client))
    assert text == DOMAIN
    assert decode_answer(text, DOMAIN) is None


def test_foreign_names_get_nxdomain(endpoints):
    server, client = endpoints
    transport = DnsTransport(server, DOMAIN)

    send_query(client, server, DNSRecord.question("www.elsewhere.net", "TXT"))
    send_query(client, server, build_query(Packet.teardown(5, 5), DOMAIN))
    assert transport.receive_next() == Packet.teardown(5, 5)
    assert transport.skipped == 1

    reply = read_reply(client)
    assert reply.header.rcode == RCODE.NXDOMAIN
    assert not reply.rr


def test_garbage_datagrams_are_skipped(endpoints):
    server, client = endpoints
    transport = DnsTransport(server, DOMAIN)

    client.sendto(b"\x01", server.address)
    send_query(client, server, build_query(Packet.teardown(5, 5), DOMAIN))
    assert transport.receive_next() == Packet.teardown(5, 5)
    assert transport.skipped == 1


def test_idle_timeout_closes():
    server = UdpEndpoint.listening("127.0.0.1", 0, timeout_ms=50)
    try:
        stats = serve(DnsTransport(server, DOMAIN), Dispatcher())
    finally:
        server.close()
    assert stats.packets_in == 0


def test_closed_socket_closes():
    server = UdpEndpoint.listening("127.0.0.1", 0)
    server.close()
    with pytest.raises(ConnectionClosed):
        DnsTransport(server, DOMAIN).receive_next()


def test_respond_requires_pending_query():
    server = UdpEndpoint.listening("127.0.0.1", 0)
    try:
        with pytest.raises(RuntimeError):
            DnsTransport(server, DOMAIN).respond(None)
    finally:
        server.close()
