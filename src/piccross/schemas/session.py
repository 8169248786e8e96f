from typing import List

import msgspec

NO_NAME = "No name recorded"


class SessionRecord(msgspec.Struct):
    id: int
    display_name: str = NO_NAME
    last_elapsed_seconds: int = 0
    last_score: int = 0
    connected: bool = True


class PuzzleHints(msgspec.Struct):
    top: List[List[int]]
    side: List[List[int]]
    capacity: int
