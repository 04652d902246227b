"""Session engine for tunneling a byte stream through request/response carriers.

The package keeps the wire codec, the per-session state machine, the session
registry and the dispatcher apart from any transport, so the protocol can be
driven by a DNS server, a scripted test double, or anything else that hands
over one packet at a time and sends back at most one reply.
"""

from .dispatcher import Dispatcher, EchoHandler, GreetingHandler, StreamHandler
from .packet import MalformedPacket, Packet, PacketKind, decode, encode
from .registry import EntryState, RegistryError, SessionRegistry
from .session import Session, SessionState
from .streams import ConsoleHandler, ForwardHandler
from .transport import ConnectionClosed, ScriptedTransport, ScriptOutcome, ScriptStep, serve

__all__ = [
    "ConnectionClosed",
    "ConsoleHandler",
    "Dispatcher",
    "EchoHandler",
    "EntryState",
    "ForwardHandler",
    "GreetingHandler",
    "MalformedPacket",
    "Packet",
    "PacketKind",
    "RegistryError",
    "ScriptOutcome",
    "ScriptStep",
    "ScriptedTransport",
    "Session",
    "SessionRegistry",
    "SessionState",
    "StreamHandler",
    "decode",
    "encode",
    "serve",
]
