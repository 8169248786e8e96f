import logging
import random
import threading
from typing import Callable, List, Optional

from piccross.core.board import Board, SelectionState
from piccross.core.generator import generate_solution
from piccross.net.protocol import FIELD_SEPARATOR
from piccross.utils.config import settings

logger = logging.getLogger(__name__)

TICK_INTERVAL_SECONDS = 1.0
CORRECT_POINTS = 1
INCORRECT_POINTS = -1

TickListener = Callable[[int], None]


class ElapsedTimer:
    """Integer-seconds counter advanced by a stoppable background tick."""

    def __init__(self, interval: float = TICK_INTERVAL_SECONDS):
        self.interval = interval
        self.seconds = 0
        self._listeners: List[TickListener] = []
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def subscribe(self, listener: TickListener) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        if self.running:
            return
        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._run, args=(stop_event,), name="elapsed-timer", daemon=True
        )
        try:
            thread.start()
        except RuntimeError as e:
            logger.debug("Elapsed timer not started: %s", e)
            return
        self._stop_event = stop_event
        self._thread = thread

    def stop(self) -> None:
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.interval)

    def reset(self) -> None:
        with self._lock:
            self.seconds = 0

    def tick(self) -> int:
        with self._lock:
            self.seconds += 1
            value = self.seconds
        for listener in list(self._listeners):
            listener(value)
        return value

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            self.tick()


class GameSession:
    """
    One player's game: the board, the running score and the elapsed timer.

    `select` is the player-input boundary. It ignores cells that are already
    selected, which is the guard `Board.classify` expects from its caller.
    """

    def __init__(
        self,
        timer: Optional[ElapsedTimer] = None,
        rng: Optional[random.Random] = None,
    ):
        self.board = Board()
        self.timer = timer or ElapsedTimer()
        self.rng = rng
        self.score = 0
        self.selections = 0
        self.final_elapsed: Optional[int] = None

    @property
    def complete(self) -> bool:
        return self.final_elapsed is not None

    def new_game(self, dimension: Optional[int] = None) -> str:
        config = generate_solution(dimension or settings.DIMENSION, self.rng)
        self.load(config)
        return config

    def load(self, config: str) -> None:
        self.board.load(config)
        self._restart()

    def reset(self) -> None:
        self.board.reset()
        self._restart()

    def start(self) -> None:
        self.timer.start()

    def stop(self) -> None:
        self.timer.stop()

    def select(self, col: int, row: int, mark_mode: bool) -> Optional[SelectionState]:
        if self.complete or self.board.is_selected(col, row):
            return None

        outcome = self.board.classify(col, row, mark_mode)
        self.score += INCORRECT_POINTS if outcome is SelectionState.INCORRECT else CORRECT_POINTS
        self.selections += 1

        if self.board.is_complete(self.selections):
            self.timer.stop()
            self.final_elapsed = self.timer.seconds
            logger.debug("Game complete in %ss with score %s", self.final_elapsed, self.score)
        return outcome

    def result_payload(self) -> str:
        """The `time#score` payload reported to the server once the game is complete."""
        if self.final_elapsed is None:
            raise RuntimeError("Game is not complete")
        return f"{self.final_elapsed}{FIELD_SEPARATOR}{self.score}"

    def _restart(self) -> None:
        self.score = 0
        self.selections = 0
        self.final_elapsed = None
        self.timer.reset()
