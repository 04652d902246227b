from __future__ import annotations

import argparse
import json
import logging
import sys

from .carrier import MAX_REPLY_LENGTH
from .constants import DEFAULT_DNS_PORT, DEFAULT_MAX_TOMBSTONES, DEFAULT_TIMEOUT_MS
from .dispatcher import Dispatcher, EchoHandler, GreetingHandler, StreamHandler
from .dns import DnsTransport
from .net import Address, Impairment, UdpEndpoint
from .packet import DATA_HEADER_SIZE
from .registry import SessionRegistry
from .selftest import run_selftest
from .sequence import fixed_isn, random_isn
from .streams import ConsoleHandler, ForwardHandler
from .transport import serve

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def isn_value(text: str) -> int:
    try:
        value = int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {text!r}") from None
    if not 0 <= value <= 0xFFFF:
        raise argparse.ArgumentTypeError(f"must fit in 16 bits: {text!r}")
    return value


def host_port(text: str) -> Address:
    host, sep, port = text.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise argparse.ArgumentTypeError(f"expected HOST:PORT, got {text!r}")
    return host, int(port)


def build_handler(args: argparse.Namespace) -> StreamHandler:
    if args.echo:
        return EchoHandler()
    if args.greeting is not None:
        return GreetingHandler(args.greeting.encode())
    if args.console:
        return ConsoleHandler(sys.stdout.buffer)
    if args.forward is not None:
        return ForwardHandler(args.forward)
    return StreamHandler()


def cmd_serve(args: argparse.Namespace) -> int:
    max_chunk = args.max_chunk if args.max_chunk is not None else MAX_REPLY_LENGTH - DATA_HEADER_SIZE
    handler = build_handler(args)
    dispatcher = Dispatcher(
        SessionRegistry(max_tombstones=args.max_tombstones),
        handler=handler,
        isn=fixed_isn(args.isn) if args.isn is not None else random_isn,
        max_chunk=max_chunk,
    )

    impair = Impairment(args.loss_rate, args.delay_ms)
    udp = UdpEndpoint.listening(
        args.listen_host,
        args.listen_port,
        timeout_ms=args.idle_timeout_ms,
        impairment=impair,
    )
    if isinstance(handler, ConsoleHandler):
        handler.start_reading(sys.stdin.buffer)
    try:
        stats = serve(DnsTransport(udp, args.domain), dispatcher)
    finally:
        udp.close()
        handler.close()

    payload = {
        "role": "server",
        "packets": stats.packets_in,
        "replies": stats.replies,
        "silent": stats.silent,
        "seconds": stats.duration_s,
    }
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0


def cmd_selftest(args: argparse.Namespace) -> int:
    outcome = run_selftest()
    payload = {"role": "selftest", "passed": outcome.passed, "failed": outcome.failed}
    print(json.dumps(payload, indent=2) if args.json else payload)
    for failure in outcome.failures:
        print(failure)
    return 0 if outcome.ok else 1


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="burrow", description="Session engine for a DNS request/response tunnel.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    serve_p = sub.add_parser("serve", help="answer tunnel queries for a domain")
    serve_p.add_argument("--domain", required=True)
    serve_p.add_argument("--listen-host", default="0.0.0.0")
    serve_p.add_argument("--listen-port", type=int, default=DEFAULT_DNS_PORT)
    serve_p.add_argument(
        "--idle-timeout-ms",
        type=int,
        default=DEFAULT_TIMEOUT_MS,
        help="stop after this long without a query (0 = never)",
    )
    serve_p.add_argument("--loss-rate", type=float, default=0.0, help="simulate inbound query loss")
    serve_p.add_argument("--delay-ms", type=int, default=0, help="simulate inbound delay")
    serve_p.add_argument("--max-chunk", type=int, default=None, help="largest data body per reply")
    serve_p.add_argument("--max-tombstones", type=int, default=DEFAULT_MAX_TOMBSTONES)
    serve_p.add_argument("--isn", type=isn_value, default=None, help="fixed initial sequence number (debugging only)")
    mode = serve_p.add_mutually_exclusive_group()
    mode.add_argument("--echo", action="store_true", help="send every received byte back")
    mode.add_argument("--greeting", default=None, help="queue this text on every new session")
    mode.add_argument(
        "--console",
        action="store_true",
        help="print received bytes and send stdin lines to the newest session",
    )
    mode.add_argument(
        "--forward",
        type=host_port,
        default=None,
        metavar="HOST:PORT",
        help="relay each session over its own TCP connection",
    )
    serve_p.add_argument("--json", action="store_true")
    serve_p.set_defaults(func=cmd_serve)

    selftest_p = sub.add_parser("selftest", help="run the scripted conversation against a fresh server")
    selftest_p.add_argument("--json", action="store_true")
    selftest_p.set_defaults(func=cmd_selftest)

    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
