from enum import IntEnum

import numpy as np

from piccross.core.codec import CELL_DTYPE, format_solution, parse_solution
from piccross.core.hints import compute_hints

NO_PUZZLE = "0"


class SelectionState(IntEnum):
    UNSELECTED = -1
    CORRECT_MARK = 0
    CORRECT_FILL = 1
    INCORRECT = 2


class Board:
    """
    A loaded solution grid plus the player's per-cell selection state.

    Both grids are indexed [row, col]; the public methods take (col, row) to
    match how the playing area addresses its cells.
    """

    def __init__(self, solution: str | None = None):
        self.solution = np.zeros((0, 0), dtype=CELL_DTYPE)
        self.selections = np.zeros((0, 0), dtype=CELL_DTYPE)
        self.config = NO_PUZZLE
        if solution is not None:
            self.load(solution)

    @property
    def dimension(self) -> int:
        return int(self.solution.shape[0])

    def load(self, solution: str) -> None:
        # Parsing raises before anything is replaced, so a bad string keeps the old board.
        grid = parse_solution(solution)
        self.solution = grid
        self.config = format_solution(grid)
        self.reset()

    def reset(self) -> None:
        self.selections = np.full(self.solution.shape, SelectionState.UNSELECTED, dtype=CELL_DTYPE)

    def classify(self, col: int, row: int, mark_mode: bool) -> SelectionState:
        """
        Judge a selection and record it.

        Precondition: the cell is unselected. The caller checks this with
        `is_selected`; classifying a cell twice overwrites the first outcome.
        """
        filled = self.solution[row, col] == 1
        if filled and not mark_mode:
            outcome = SelectionState.CORRECT_FILL
        elif not filled and mark_mode:
            outcome = SelectionState.CORRECT_MARK
        else:
            outcome = SelectionState.INCORRECT

        self.selections[row, col] = outcome
        return outcome

    def state_at(self, col: int, row: int) -> SelectionState:
        return SelectionState(int(self.selections[row, col]))

    def is_selected(self, col: int, row: int) -> bool:
        return self.state_at(col, row) is not SelectionState.UNSELECTED

    def is_filled(self, col: int, row: int) -> bool:
        return bool(self.solution[row, col])

    def is_complete(self, total_selections: int) -> bool:
        return total_selections == self.dimension * self.dimension

    def hints(self):
        return compute_hints(self.solution)

    def __str__(self) -> str:
        return self.config


def parse_board(solution: str) -> Board:
    return Board(solution)
