import random

from piccross.core.codec import EMPTY, FILLED, ROW_SEPARATOR

COIN_FLIP_BITS = 1


def _flip(rng: random.Random) -> bool:
    return rng.getrandbits(COIN_FLIP_BITS) == 1


def generate_solution(dimension: int, rng: random.Random | None = None) -> str:
    """
    Build a random solution in canonical string form.

    Every row and every column ends up with at least one filled cell: a row
    that is still empty at its last column gets that cell forced, and the last
    row forces any column that no earlier row has covered.
    """
    if dimension < 1:
        raise ValueError(f"Dimension must be at least 1, got {dimension}")

    rng = rng or random.Random()
    last = dimension - 1
    column_filled = [False] * dimension
    rows = []

    for row in range(dimension):
        row_filled = False
        cells = []
        for col in range(dimension):
            if row == last and not column_filled[col]:
                fill = True
            else:
                fill = _flip(rng) or (col == last and not row_filled)

            if fill:
                row_filled = True
                column_filled[col] = True
            cells.append(FILLED if fill else EMPTY)
        rows.append("".join(cells))

    return ROW_SEPARATOR.join(rows)
