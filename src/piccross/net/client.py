import logging
import socket
from enum import Enum
from typing import Optional

from piccross.net.protocol import (
    EMPTY_PAYLOAD,
    ENCODING,
    LINE_TERMINATOR,
    MalformedMessage,
    Opcode,
    decode_response,
    encode_message,
)
from piccross.utils.config import settings

logger = logging.getLogger(__name__)


class FailureKind(str, Enum):
    HOST_UNREACHABLE = "host unreachable"
    PORT = "port error"
    UNKNOWN = "unknown error"


class ConnectFailure(ConnectionError):
    def __init__(self, kind: FailureKind, message: str):
        super().__init__(message)
        self.kind = kind


class ConnectionLost(ConnectionError):
    pass


class GameClient:
    """Blocking client for the piccross server: one request line, one reply line."""

    def __init__(self, host: str = settings.HOST, port: int = settings.PORT, timeout: Optional[float] = None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.session_id: Optional[int] = None
        self._sock: Optional[socket.socket] = None
        self._reader = None

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def connect(self) -> int:
        try:
            sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        except socket.gaierror as e:
            raise ConnectFailure(FailureKind.HOST_UNREACHABLE, f"Host name {self.host!r} is invalid") from e
        except OSError as e:
            raise ConnectFailure(FailureKind.PORT, f"Could not connect on port {self.port}: {e}") from e

        reader = sock.makefile("r", encoding=ENCODING, newline=LINE_TERMINATOR)
        greeting = ""
        try:
            greeting = reader.readline()
            session_id = int(greeting.strip())
        except ValueError as e:
            reader.close()
            sock.close()
            raise ConnectFailure(FailureKind.UNKNOWN, f"Unexpected greeting from server: {greeting!r}") from e
        except OSError as e:
            reader.close()
            sock.close()
            raise ConnectFailure(FailureKind.PORT, f"Server did not send a session id: {e}") from e

        self._sock, self._reader, self.session_id = sock, reader, session_id
        logger.info("We are client %d connected in server", session_id)
        return session_id

    def submit_config(self, config: str) -> None:
        self._request(Opcode.SUBMIT_CONFIG, config)

    def submit_name(self, name: str) -> None:
        self._request(Opcode.SUBMIT_NAME, name)

    def submit_result(self, elapsed_seconds: int, score: int) -> None:
        self._request(Opcode.SUBMIT_RESULT, elapsed_seconds, score)

    def request_config(self) -> Optional[str]:
        """The shared puzzle config, or None when the server has none saved."""
        config = self._request(Opcode.REQUEST_CONFIG)
        if config == EMPTY_PAYLOAD:
            logger.info("Server has no saved game")
            return None
        return config

    def disconnect(self) -> None:
        if not self.connected:
            return
        try:
            self._request(Opcode.END)
        except ConnectionLost as e:
            logger.debug("Server did not acknowledge the close: %s", e)
        finally:
            self._drop()

    def _request(self, opcode: Opcode, *fields) -> str:
        if self._sock is None or self.session_id is None:
            raise ConnectionLost("Not connected to a server")

        line = encode_message(self.session_id, opcode, *fields)
        logger.debug("Sending %s", line)
        try:
            self._sock.sendall((line + LINE_TERMINATOR).encode(ENCODING))
            reply = self._reader.readline()
        except OSError as e:
            self._drop()
            raise ConnectionLost(f"Connection to server lost: {e}") from e

        if not reply:
            self._drop()
            raise ConnectionLost("Server closed the connection")
        try:
            _, payload = decode_response(reply)
        except MalformedMessage as e:
            self._drop()
            raise ConnectionLost(f"Unreadable reply from server: {e}") from e
        return payload

    def _drop(self) -> None:
        reader, sock = self._reader, self._sock
        self._reader = self._sock = None
        if reader is not None:
            reader.close()
        if sock is not None:
            sock.close()

    def __enter__(self) -> "GameClient":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()
