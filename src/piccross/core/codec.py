import numpy as np

ROW_SEPARATOR = ","
FILLED = "1"
EMPTY = "0"
BINARY_CHARS = frozenset(FILLED + EMPTY)
CELL_DTYPE = np.int8


class FormatError(ValueError):
    """Raised when a solution string is not a square grid of 0/1 rows."""


def parse_solution(text: str) -> np.ndarray:
    """
    Parse the canonical comma-joined form into an N x N grid indexed [row, col].

    The dimension is the length of the first row; every other row must match it.
    """
    if not isinstance(text, str) or not text.strip():
        raise FormatError("Solution string is empty")

    rows = text.strip().split(ROW_SEPARATOR)
    dimension = len(rows[0])
    if dimension == 0:
        raise FormatError("First row of the solution is empty")

    for idx, row in enumerate(rows):
        if len(row) != dimension:
            raise FormatError(f"Row {idx} has length {len(row)}, expected {dimension}")
        if not set(row) <= BINARY_CHARS:
            raise FormatError(f"Row {idx} contains non-binary characters: {row!r}")

    if len(rows) != dimension:
        raise FormatError(f"Expected {dimension} rows, got {len(rows)}")

    return np.array([[int(cell) for cell in row] for row in rows], dtype=CELL_DTYPE)


def format_solution(grid) -> str:
    grid = np.asarray(grid)
    return ROW_SEPARATOR.join(
        "".join(FILLED if cell else EMPTY for cell in row) for row in grid
    )
