import random
import sys
from typing import Annotated, Optional, Tuple

import msgspec
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from piccross.core.board import Board, SelectionState
from piccross.core.codec import FormatError
from piccross.core.game import GameSession
from piccross.core.generator import generate_solution
from piccross.core.hints import hint_capacity, pad_runs, summarize_hints
from piccross.net.client import ConnectFailure, ConnectionLost, GameClient
from piccross.net.protocol import MalformedMessage, check_field
from piccross.net.server import serve as run_server
from piccross.utils.config import settings
from piccross.utils.log import setup_logging

app = typer.Typer(help="Piccross: picture-cross puzzles, solo or shared through a server.")
console = Console()

MIN_DIMENSION = 1
MAX_PORT = 65535

CYAN_STYLE = "cyan"
GREEN_STYLE = "green"
RED_STYLE = "red"
YELLOW_STYLE = "yellow"
BOLD_STYLE = "bold"
DIM_STYLE = "dim"

DISPLAY_SYMBOL_FILLED = "█"
DISPLAY_SYMBOL_EMPTY = "·"
DISPLAY_SYMBOL_MARKED = "x"
DISPLAY_SYMBOL_WRONG = "✗"
BLANK_SLOT = " "

MARK_FLAG = "m"
RESET_COMMAND = "r"
QUIT_COMMAND = "q"
MOVE_PROMPT = "Move (col row [m]), r to reset, q to quit"

def cell_symbol(board: Board, col: int, row: int, reveal: bool) -> str:
    state = board.state_at(col, row)
    if state is SelectionState.CORRECT_FILL:
        return f"[{CYAN_STYLE}]{DISPLAY_SYMBOL_FILLED}[/{CYAN_STYLE}]"
    if state is SelectionState.CORRECT_MARK:
        return f"[{DIM_STYLE}]{DISPLAY_SYMBOL_MARKED}[/{DIM_STYLE}]"
    if state is SelectionState.INCORRECT:
        return f"[{RED_STYLE}]{DISPLAY_SYMBOL_WRONG}[/{RED_STYLE}]"
    if reveal and board.is_filled(col, row):
        return DISPLAY_SYMBOL_FILLED
    return f"[{DIM_STYLE}]{DISPLAY_SYMBOL_EMPTY}[/{DIM_STYLE}]"


def build_board_table(board: Board, reveal: bool = False) -> Table:
    """Hints sit against the grid edge: top hints grow upward, side hints grow leftward."""
    top, side = board.hints()
    capacity = hint_capacity(board.dimension)

    table = Table(show_header=True, header_style=BOLD_STYLE, show_lines=False)
    table.add_column("", justify="right", style=BOLD_STYLE)
    for runs in top:
        slots = pad_runs(runs, capacity)
        header = "\n".join(BLANK_SLOT if slot is None else str(slot) for slot in slots)
        table.add_column(header, justify="center")

    for row, runs in enumerate(side):
        label = " ".join(str(slot) for slot in pad_runs(runs, capacity) if slot is not None)
        cells = [cell_symbol(board, col, row, reveal) for col in range(board.dimension)]
        table.add_row(label, *cells)
    return table


def parse_move(text: str, dimension: int) -> Tuple[int, int, bool]:
    """Turn '3 2' or '3 2 m' (1-based col, row) into zero-based (col, row, mark_mode)."""
    parts = text.split()
    if len(parts) not in (2, 3) or (len(parts) == 3 and parts[2].lower() != MARK_FLAG):
        raise ValueError(f"Expected 'col row' or 'col row {MARK_FLAG}', got {text!r}")
    col, row = int(parts[0]) - 1, int(parts[1]) - 1
    if not (0 <= col < dimension and 0 <= row < dimension):
        raise ValueError(f"Position {parts[0]},{parts[1]} is outside the {dimension}x{dimension} board")
    return col, row, len(parts) == 3


def load_board_or_exit(config: str) -> Board:
    try:
        return Board(config)
    except FormatError as e:
        console.print(f"[{RED_STYLE}]Invalid puzzle: {escape(str(e))}[/{RED_STYLE}]")
        sys.exit(1)


def check_name_or_exit(name: Optional[str]) -> None:
    if not name:
        return
    try:
        check_field(name)
    except MalformedMessage as e:
        console.print(f"[{RED_STYLE}]Invalid name: {escape(str(e))}[/{RED_STYLE}]")
        sys.exit(1)


def report_result(session: GameSession, host: str, port: int, name: Optional[str]) -> None:
    try:
        with GameClient(host, port) as client:
            if name:
                client.submit_name(name)
            client.submit_result(session.final_elapsed, session.score)
        console.print(f"[{GREEN_STYLE}]Result sent to {host}:{port}[/{GREEN_STYLE}]")
    except (ConnectFailure, ConnectionLost) as e:
        console.print(f"[{RED_STYLE}]Could not report result: {escape(str(e))}[/{RED_STYLE}]")
        sys.exit(1)


@app.callback()
def configure(
    log_level: Annotated[str, typer.Option(help="Logging level")] = settings.LOG_LEVEL,
):
    setup_logging(log_level, console=console)


@app.command()
def generate(
    dimension: int = typer.Option(settings.DIMENSION, "--dimension", "-n", min=MIN_DIMENSION, help="Board size"),
    seed: Optional[int] = typer.Option(None, help="Random seed for reproducibility"),
    show: bool = typer.Option(True, help="Render the solution with its hints"),
):
    config = generate_solution(dimension, random.Random(seed))
    typer.echo(config)
    if show:
        console.print(build_board_table(Board(config), reveal=True))


@app.command()
def show(
    config: Annotated[str, typer.Argument(help="Puzzle in comma-joined 0/1 rows")],
    json_output: bool = typer.Option(False, "--json", help="Print the hints as JSON"),
):
    board = load_board_or_exit(config)
    if json_output:
        typer.echo(msgspec.json.encode(summarize_hints(board.solution)).decode())
        return
    console.print(build_board_table(board, reveal=True))


@app.command()
def play(
    dimension: int = typer.Option(settings.DIMENSION, "--dimension", "-n", min=MIN_DIMENSION, help="Board size"),
    config: Optional[str] = typer.Option(None, help="Play this puzzle instead of a random one"),
    seed: Optional[int] = typer.Option(None, help="Random seed for reproducibility"),
    report: bool = typer.Option(False, help="Send the finished result to the server"),
    name: Optional[str] = typer.Option(None, help="Display name sent with the result"),
    host: str = typer.Option(settings.HOST, help="Server host"),
    port: int = typer.Option(settings.PORT, min=0, max=MAX_PORT, help="Server port"),
):
    if report:
        check_name_or_exit(name)
    session = GameSession(rng=random.Random(seed))
    if config:
        try:
            session.load(config)
        except FormatError as e:
            console.print(f"[{RED_STYLE}]Invalid puzzle: {escape(str(e))}[/{RED_STYLE}]")
            sys.exit(1)
    else:
        session.new_game(dimension)

    session.start()
    try:
        while not session.complete:
            console.print(build_board_table(session.board))
            console.print(f"Score: [{BOLD_STYLE}]{session.score}[/{BOLD_STYLE}]  Time: {session.timer.seconds}s")
            command = typer.prompt(MOVE_PROMPT).strip().lower()
            if command == QUIT_COMMAND:
                console.print(f"[{YELLOW_STYLE}]Game abandoned.[/{YELLOW_STYLE}]")
                return
            if command == RESET_COMMAND:
                session.reset()
                continue
            try:
                col, row, mark_mode = parse_move(command, session.board.dimension)
            except ValueError as e:
                console.print(f"[{RED_STYLE}]{escape(str(e))}[/{RED_STYLE}]")
                continue
            if session.select(col, row, mark_mode) is None:
                console.print(f"[{DIM_STYLE}]Position {col + 1},{row + 1} is already selected.[/{DIM_STYLE}]")
    finally:
        session.stop()

    console.print(build_board_table(session.board, reveal=True))
    console.print(
        f"\n[{BOLD_STYLE} {GREEN_STYLE}]Game over![/] "
        f"Score: {session.score}  Time: {session.final_elapsed}s"
    )
    if report:
        report_result(session, host, port, name)


@app.command()
def serve(
    host: str = typer.Option(settings.HOST, help="Server host"),
    port: int = typer.Option(settings.PORT, min=0, max=MAX_PORT, help="Server port"),
    finalize: bool = typer.Option(settings.AUTO_CLOSE, help="Close the server once the last client leaves"),
    idle_timeout: float = typer.Option(settings.IDLE_TIMEOUT, min=0, help="Seconds before an idle client is dropped (0 waits forever)"),
):
    try:
        registry = run_server(host, port, auto_close=finalize, idle_timeout=idle_timeout)
    except OSError as e:
        console.print(f"[{RED_STYLE}]Could not start server on port {port}: {escape(str(e))}[/{RED_STYLE}]")
        sys.exit(1)

    console.print(f"\n[{BOLD_STYLE}]Results:[/{BOLD_STYLE}]")
    for line in registry.report_lines():
        console.print(f"  {line}", markup=False, highlight=False)


@app.command()
def push(
    config: Optional[str] = typer.Option(None, help="Puzzle to save on the server"),
    name: Optional[str] = typer.Option(None, help="Display name"),
    elapsed: Optional[int] = typer.Option(None, "--time", min=0, help="Elapsed seconds of a finished game"),
    score: Optional[int] = typer.Option(None, help="Score of a finished game"),
    host: str = typer.Option(settings.HOST, help="Server host"),
    port: int = typer.Option(settings.PORT, min=0, max=MAX_PORT, help="Server port"),
):
    if config:
        load_board_or_exit(config)
    check_name_or_exit(name)
    if (elapsed is None) != (score is None):
        console.print(f"[{RED_STYLE}]--time and --score must be given together[/{RED_STYLE}]")
        sys.exit(1)

    try:
        with GameClient(host, port) as client:
            if name:
                client.submit_name(name)
                console.print(f"{name} sent", markup=False)
            if config:
                client.submit_config(config)
                console.print(f"{config} sent", markup=False)
            if elapsed is not None:
                client.submit_result(elapsed, score)
                console.print(f"{elapsed}#{score} sent", markup=False)
    except (ConnectFailure, ConnectionLost) as e:
        console.print(f"[{RED_STYLE}]{escape(str(e))}[/{RED_STYLE}]")
        sys.exit(1)


@app.command()
def fetch(
    host: str = typer.Option(settings.HOST, help="Server host"),
    port: int = typer.Option(settings.PORT, min=0, max=MAX_PORT, help="Server port"),
    show: bool = typer.Option(True, help="Render the received puzzle"),
):
    try:
        with GameClient(host, port) as client:
            config = client.request_config()
    except (ConnectFailure, ConnectionLost) as e:
        console.print(f"[{RED_STYLE}]{escape(str(e))}[/{RED_STYLE}]")
        sys.exit(1)

    if config is None:
        console.print(f"[{YELLOW_STYLE}]Server has no saved game[/{YELLOW_STYLE}]")
        return

    typer.echo(f"Received game {config}")
    if show:
        console.print(build_board_table(load_board_or_exit(config)))


def main():
    app()


if __name__ == "__main__":
    main()
