import logging
import socketserver
import threading
from enum import Enum, auto
from typing import Optional, Tuple

from piccross.net.protocol import (
    CLOSING_ACK,
    EMPTY_PAYLOAD,
    ENCODING,
    LINE_TERMINATOR,
    MalformedMessage,
    Message,
    Opcode,
    decode_message,
    encode_greeting,
    encode_response,
)
from piccross.net.registry import SessionRegistry
from piccross.utils.config import settings

logger = logging.getLogger(__name__)


class HandlerState(Enum):
    CONNECTED = auto()
    DISPATCHING = auto()
    TERMINATED = auto()


class ConnectionHandler(socketserver.StreamRequestHandler):
    """
    One client connection.

    Sends the session id, then answers one reply per request line until the
    client ends the session or the socket fails. Either way the session is
    unregistered on the way out; there is no reconnect.
    """

    server: "PiccrossServer"

    def setup(self):
        self.timeout = self.server.idle_timeout
        self.state = HandlerState.CONNECTED
        self.session_id: Optional[int] = None
        super().setup()

    def handle(self):
        registry = self.server.registry
        self.session_id = registry.register()
        host, port = self.client_address[:2]
        logger.info("Connecting %s in port %s as client %d", host, port, self.session_id)

        try:
            self._send(encode_greeting(self.session_id))
            self.state = HandlerState.DISPATCHING
            while self.state is HandlerState.DISPATCHING:
                raw = self.rfile.readline()
                if not raw:
                    logger.info("Client %d closed the connection", self.session_id)
                    break

                message = decode_message(raw.decode(ENCODING))
                reply = self.dispatch(message)
                if reply is None:
                    self._say_goodbye()
                    break
                self._send(encode_response(self.session_id, reply))
        except MalformedMessage as e:
            logger.warning("Dropping client %d: %s", self.session_id, e)
        except (OSError, UnicodeDecodeError) as e:
            logger.info("Connection to client %d lost: %s", self.session_id, e)
        finally:
            self.state = HandlerState.TERMINATED
            registry.unregister(self.session_id)
            logger.info("There are %d clients connected", registry.active_count)

    def dispatch(self, message: Message) -> Optional[str]:
        """Apply one request to the registry; None means the session is over."""
        registry = self.server.registry
        session_id = self.session_id
        if message.session_id != session_id:
            logger.warning(
                "Client %d sent a message tagged with id %d", session_id, message.session_id
            )

        if message.opcode is Opcode.END:
            name = registry.display_name(session_id)
            logger.info("Disconnecting client %d (%s) at %s", session_id, name, self.client_address[0])
            return None

        reply = EMPTY_PAYLOAD
        if message.opcode is Opcode.SUBMIT_CONFIG:
            registry.set_puzzle_config(message.fields[0])
            received = f"a game configuration ({message.fields[0]})"
        elif message.opcode is Opcode.SUBMIT_NAME:
            registry.update_name(session_id, message.fields[0])
            received = "their name"
        elif message.opcode is Opcode.SUBMIT_RESULT:
            elapsed, score = (int(field) for field in message.fields)
            registry.update_result(session_id, elapsed, score)
            received = f"their time ({elapsed}) and score ({score})"
        else:
            reply = registry.get_puzzle_config()
            received = "a request for the game configuration"

        logger.info("Client %d (%s) sent %s", session_id, registry.display_name(session_id), received)
        return reply

    def _send(self, line: str) -> None:
        self.wfile.write((line + LINE_TERMINATOR).encode(ENCODING))
        self.wfile.flush()

    def _say_goodbye(self) -> None:
        try:
            self._send(encode_response(self.session_id, CLOSING_ACK))
        except OSError as e:
            logger.debug("Closing acknowledgement to client %d not delivered: %s", self.session_id, e)


class PiccrossServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    """Thread-per-connection acceptor sharing one SessionRegistry across handlers."""

    daemon_threads = True
    allow_reuse_address = True

    def __init__(
        self,
        address: Tuple[str, int],
        registry: Optional[SessionRegistry] = None,
        idle_timeout: Optional[float] = None,
    ):
        self.registry = registry or SessionRegistry()
        if idle_timeout is None:
            idle_timeout = settings.IDLE_TIMEOUT
        # socket timeouts of None block forever
        self.idle_timeout = idle_timeout if idle_timeout > 0 else None
        self.registry.on_empty = self.request_shutdown
        super().__init__(address, ConnectionHandler)

    @property
    def port(self) -> int:
        return self.server_address[1]

    def request_shutdown(self) -> None:
        # shutdown() blocks until serve_forever returns, so it cannot run on the serving thread.
        threading.Thread(target=self.shutdown, name="piccross-shutdown", daemon=True).start()


def serve(host: str, port: int, auto_close: bool = False, idle_timeout: Optional[float] = None) -> SessionRegistry:
    """Run a server until it is interrupted or closes itself; returns its registry for reporting."""
    registry = SessionRegistry(auto_close=auto_close)
    with PiccrossServer((host, port), registry=registry, idle_timeout=idle_timeout) as server:
        logger.info("Server on %s port %d", host, server.port)
        if auto_close:
            logger.info("Server will close when there are no more connections")
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            logger.info("Server stopped manually")
    return registry
