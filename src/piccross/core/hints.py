import itertools
import math
from typing import List, Optional, Tuple

import numpy as np

from piccross.schemas.session import PuzzleHints

EMPTY_LINE_RUNS = [0]

Runs = List[int]


def line_runs(line) -> Runs:
    """Lengths of consecutive filled cells, in scan order. An empty line gives [0]."""
    runs = [len(list(group)) for filled, group in itertools.groupby(line) if filled]
    return runs or list(EMPTY_LINE_RUNS)


def hint_capacity(dimension: int) -> int:
    # An n-cell line holds at most ceil(n / 2) separated runs.
    return max(1, math.ceil(dimension / 2))


def compute_hints(grid) -> Tuple[List[Runs], List[Runs]]:
    """Return (top, side): column runs scanned top to bottom, row runs scanned left to right."""
    grid = np.asarray(grid)
    rows, cols = grid.shape
    top = [line_runs(grid[:, col]) for col in range(cols)]
    side = [line_runs(grid[row, :]) for row in range(rows)]
    return top, side


def pad_runs(runs: Runs, capacity: int) -> List[Optional[int]]:
    """Right-align runs into capacity slots, leading blanks as None."""
    if len(runs) > capacity:
        raise ValueError(f"{len(runs)} runs do not fit in {capacity} slots")
    visible = [run for run in runs if run > 0]
    return [None] * (capacity - len(visible)) + visible


def summarize_hints(grid) -> PuzzleHints:
    top, side = compute_hints(grid)
    return PuzzleHints(top=top, side=side, capacity=hint_capacity(len(side)))
