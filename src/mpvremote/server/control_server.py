"""TCP acceptor for the control protocol.

One listener per bound address, each with its own accept thread. Every
accepted connection is handled on a fresh thread: read once, parse,
dispatch, write, close. There is no connection cap and no read timeout;
the server is meant for a handful of trusted LAN clients.
"""

from __future__ import annotations

import logging
import socket
import threading
from typing import TYPE_CHECKING

from mpvremote.server.protocol import MalformedRequest, encode_response, parse_request

if TYPE_CHECKING:
    from mpvremote.server.dispatcher import Dispatcher

logger = logging.getLogger(__name__)


class ControlServer:
    """Accepts control connections on one or more addresses.

    Usage:
        server = ControlServer(dispatcher, [("127.0.0.1", 6780)])
        bound = server.start()
        ...
        server.stop()
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        addresses: list[tuple[str, int]],
        buffer_size: int = 1024,
    ):
        self.dispatcher = dispatcher
        self.addresses = addresses
        self.buffer_size = buffer_size
        self._listeners: list[socket.socket] = []
        self._running = False

    @property
    def bound(self) -> list[tuple[str, int]]:
        """Actual (host, port) of every listener that started."""
        return [sock.getsockname()[:2] for sock in self._listeners]

    def start(self) -> list[tuple[str, int]]:
        """Bind every address and start its accept loop.

        A failed bind only loses that address. Returns the bound addresses;
        an empty list means there is no control surface.
        """
        self._running = True
        for host, port in self.addresses:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                sock.bind((host, port))
                sock.listen()
            except OSError as e:
                logger.error("Cannot listen on %s:%d: %s", host, port, e)
                sock.close()
                continue
            self._listeners.append(sock)
            name = "accept-%s:%d" % sock.getsockname()[:2]
            threading.Thread(
                target=self._accept_loop, args=(sock,), daemon=True, name=name,
            ).start()
            logger.info("Control server listening on %s:%d", *sock.getsockname()[:2])

        if not self._listeners:
            logger.error("Control server could not bind any address")
        return self.bound

    def stop(self):
        """Close all listeners. In-flight handlers finish on their own."""
        self._running = False
        for sock in self._listeners:
            # shutdown() wakes a thread blocked in accept(); close() alone does not
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            sock.close()
        self._listeners = []

    def _accept_loop(self, listener: socket.socket):
        while self._running:
            try:
                conn, addr = listener.accept()
            except OSError as e:
                if self._running:
                    logger.warning("Accept failed: %s", e)
                    continue
                break
            threading.Thread(
                target=self.handle_connection, args=(conn, addr), daemon=True,
                name=f"conn-{addr[0]}:{addr[1]}",
            ).start()

    def handle_connection(self, conn: socket.socket, addr=None):
        """Serve one request on conn and close it."""
        try:
            try:
                data = conn.recv(self.buffer_size)
            except OSError as e:
                logger.warning("Read from %s failed: %s", addr, e)
                return

            try:
                request = parse_request(data)
            except MalformedRequest as e:
                logger.debug("Ignoring request from %s: %s", addr, e)
                return

            logger.debug("%s %s from %s", request.method, request.path, addr)
            try:
                response = self.dispatcher.dispatch(request)
            except Exception:
                logger.exception("Error handling %s %s", request.method, request.path)
                return
            if response is None:
                return

            try:
                conn.sendall(encode_response(response))
            except OSError as e:
                logger.warning("Write to %s failed: %s", addr, e)
        finally:
            try:
                conn.close()
            except OSError:
                pass
