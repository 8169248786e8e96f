import logging
import threading
from typing import Callable, Dict, List, Optional

import msgspec

from piccross.core.board import NO_PUZZLE
from piccross.schemas.session import SessionRecord

logger = logging.getLogger(__name__)

FIRST_SESSION_ID = 1
NO_CLIENTS_LINE = "No clients connected"


class SessionRegistry:
    """
    Connected sessions and the shared puzzle config for one server process.

    Every read and write goes through one lock. Ids come from a counter that
    never goes back, so a dropped client that reconnects gets a new id.
    """

    def __init__(self, auto_close: bool = False, on_empty: Optional[Callable[[], None]] = None):
        self._lock = threading.Lock()
        self._sessions: Dict[int, SessionRecord] = {}
        self._next_id = FIRST_SESSION_ID
        self._active = 0
        self._puzzle_config = NO_PUZZLE
        self._auto_close = auto_close
        self.on_empty = on_empty
        self.shutdown_requested = threading.Event()

    @property
    def active_count(self) -> int:
        with self._lock:
            return self._active

    @property
    def auto_close(self) -> bool:
        with self._lock:
            return self._auto_close

    def register(self) -> int:
        with self._lock:
            session_id = self._next_id
            self._next_id += 1
            self._sessions[session_id] = SessionRecord(id=session_id)
            self._active += 1
        return session_id

    def unregister(self, session_id: int) -> None:
        with self._lock:
            record = self._sessions.get(session_id)
            if record is None or not record.connected:
                return
            record.connected = False
            self._active -= 1
            empty = self._active == 0 and self._auto_close
        if empty:
            self._signal_shutdown()

    def update_name(self, session_id: int, name: str) -> None:
        with self._lock:
            record = self._live(session_id)
            if record is not None:
                record.display_name = name

    def update_result(self, session_id: int, elapsed_seconds: int, score: int) -> None:
        with self._lock:
            record = self._live(session_id)
            if record is not None:
                record.last_elapsed_seconds = elapsed_seconds
                record.last_score = score

    def display_name(self, session_id: int) -> Optional[str]:
        with self._lock:
            record = self._sessions.get(session_id)
            return record.display_name if record is not None else None

    def set_puzzle_config(self, config: str) -> None:
        with self._lock:
            self._puzzle_config = config

    def get_puzzle_config(self) -> str:
        with self._lock:
            return self._puzzle_config

    def set_auto_close(self, enabled: bool) -> None:
        with self._lock:
            self._auto_close = enabled
            empty = enabled and self._active == 0
        if enabled:
            logger.info("Server will close when there are no more connections")
        else:
            logger.info("Server will remain open when there are no more connections")
        if empty:
            self._signal_shutdown()

    def snapshot(self) -> List[SessionRecord]:
        with self._lock:
            return [msgspec.structs.replace(record) for record in self._sessions.values()]

    def snapshot_json(self) -> bytes:
        return msgspec.json.encode(self.snapshot())

    def report_lines(self) -> List[str]:
        records = self.snapshot()
        if not records:
            return [NO_CLIENTS_LINE]

        lines = []
        for record in records:
            if record.last_elapsed_seconds == 0:
                outcome = "has not finished a game"
            else:
                outcome = (
                    f"last played game took {record.last_elapsed_seconds} seconds "
                    f"and scored {record.last_score} points"
                )
            lines.append(f"Client {record.id} ({record.display_name}) {outcome}")
        return lines

    def _live(self, session_id: int) -> Optional[SessionRecord]:
        record = self._sessions.get(session_id)
        if record is None or not record.connected:
            return None
        return record

    def _signal_shutdown(self) -> None:
        logger.info("Closing server...")
        self.shutdown_requested.set()
        if self.on_empty is not None:
            self.on_empty()
