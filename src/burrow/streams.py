"""Handlers that connect sessions to real byte streams.

:class:`ConsoleHandler` prints whatever the peer sends and pushes console
input to the most recently opened session. :class:`ForwardHandler` gives every
session its own TCP connection to a fixed address.

Both feed bytes into sessions from their own threads, so they go through
:meth:`Dispatcher.send` and never touch a session outside its lock.
"""

from __future__ import annotations

import logging
import socket
import threading
from typing import BinaryIO

from .dispatcher import Dispatcher, StreamHandler
from .net import Address
from .session import Session

logger = logging.getLogger(__name__)

READ_SIZE = 4096


class ConsoleHandler(StreamHandler):
    def __init__(self, out: BinaryIO):
        self.out = out
        self.current: int | None = None
        self.dispatcher: Dispatcher | None = None
        self._pending = bytearray()
        self._lock = threading.Lock()

    def attach(self, dispatcher: Dispatcher) -> None:
        self.dispatcher = dispatcher

    def session_opened(self, session: Session) -> None:
        with self._lock:
            self.current = session.session_id
            if self._pending:
                session.queue_outgoing(bytes(self._pending))
                self._pending.clear()

    def data_received(self, session: Session, data: bytes) -> None:
        self.out.write(data)
        self.out.flush()

    def session_closed(self, session_id: int) -> None:
        with self._lock:
            if self.current == session_id:
                self.current = None

    def feed(self, data: bytes) -> None:
        """Send ``data`` to the current session, or hold it for the next one."""
        with self._lock:
            sid = self.current
            if sid is None or self.dispatcher is None:
                self._pending.extend(data)
                return
        if not self.dispatcher.send(sid, data):
            with self._lock:
                self._pending.extend(data)

    def read_from(self, stream: BinaryIO) -> None:
        for line in iter(stream.readline, b""):
            self.feed(line)
        logger.info("console input closed")

    def start_reading(self, stream: BinaryIO) -> threading.Thread:
        t = threading.Thread(target=self.read_from, args=(stream,), name="console-input", daemon=True)
        t.start()
        return t


class ForwardHandler(StreamHandler):
    """Relays each session over its own TCP connection to ``target``.

    Bytes from the peer are written to the connection; bytes read back are
    queued on the session. The connection is shut down when the session
    closes. A session whose connection could not be made still works, but
    anything it receives is dropped with a warning.
    """

    def __init__(self, target: Address, *, connect_timeout: float = 5.0):
        self.target = target
        self.connect_timeout = connect_timeout
        self.dispatcher: Dispatcher | None = None
        self._connections: dict[int, socket.socket] = {}
        self._lock = threading.Lock()

    def attach(self, dispatcher: Dispatcher) -> None:
        self.dispatcher = dispatcher

    def session_opened(self, session: Session) -> None:
        sid = session.session_id
        try:
            conn = socket.create_connection(self.target, timeout=self.connect_timeout)
        except OSError as e:
            logger.error("session %#06x: cannot connect to %s:%d: %s", sid, *self.target, e)
            return
        conn.settimeout(None)
        with self._lock:
            self._connections[sid] = conn
        logger.info("session %#06x: forwarding to %s:%d", sid, *self.target)
        threading.Thread(target=self._pump, args=(sid, conn), name=f"forward-{sid:04x}", daemon=True).start()

    def data_received(self, session: Session, data: bytes) -> None:
        with self._lock:
            conn = self._connections.get(session.session_id)
        if conn is None:
            logger.warning("session %#06x: no connection, dropping %d bytes", session.session_id, len(data))
            return
        conn.sendall(data)

    def session_closed(self, session_id: int) -> None:
        with self._lock:
            conn = self._connections.pop(session_id, None)
        if conn is not None:
            _shutdown(conn)

    def close(self) -> None:
        with self._lock:
            conns = list(self._connections.values())
            self._connections.clear()
        for conn in conns:
            _shutdown(conn)

    def _pump(self, session_id: int, conn: socket.socket) -> None:
        while True:
            try:
                data = conn.recv(READ_SIZE)
            except OSError:
                break
            if not data:
                break
            with self._lock:
                if self._connections.get(session_id) is not conn:
                    break
            if self.dispatcher is None or not self.dispatcher.send(session_id, data):
                break
        logger.info("session %#06x: forward connection finished", session_id)


def _shutdown(conn: socket.socket) -> None:
    try:
        conn.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    conn.close()
