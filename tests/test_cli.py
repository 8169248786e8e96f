import re
from unittest.mock import MagicMock, patch

import msgspec
import pytest
from typer.testing import CliRunner

from piccross import cli
from piccross.cli import app
from piccross.core.board import Board
from piccross.core.codec import parse_solution
from piccross.net.client import ConnectFailure, FailureKind
from piccross.net.registry import SessionRegistry

runner = CliRunner()

def strip_ansi(text: str) -> str:
    ansi_escape = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')
    return ansi_escape.sub('', text)

def test_generate_prints_valid_config():
    result = runner.invoke(app, ["generate", "-n", "4", "--seed", "3", "--no-show"])
    assert result.exit_code == 0
    config = strip_ansi(result.output).strip().splitlines()[0]
    grid = parse_solution(config)
    assert grid.shape == (4, 4)
    assert grid.any(axis=0).all() and grid.any(axis=1).all()

def test_generate_renders_board():
    result = runner.invoke(app, ["generate", "-n", "3", "--seed", "1"])
    assert result.exit_code == 0
    assert cli.DISPLAY_SYMBOL_FILLED in result.output

def test_show_json_hints():
    result = runner.invoke(app, ["show", "10011,00000,11111,01010,10001", "--json"])
    assert result.exit_code == 0
    hints = msgspec.json.decode(strip_ansi(result.output).strip())
    assert hints["side"] == [[1, 2], [0], [5], [1, 1], [1, 1]]
    assert hints["capacity"] == 3

def test_show_rejects_bad_puzzle():
    result = runner.invoke(app, ["show", "10,0"])
    assert result.exit_code == 1
    assert "Invalid puzzle" in strip_ansi(result.output)

def test_build_board_table_dimensions():
    table = cli.build_board_table(Board("110,001,011"))
    assert len(table.columns) == 4
    assert table.row_count == 3

@pytest.mark.parametrize("text, expected", [
    ("1 1", (0, 0, False)),
    ("3 2 m", (2, 1, True)),
    ("2 3 M", (1, 2, True)),
])
def test_parse_move(text, expected):
    assert cli.parse_move(text, 3) == expected

@pytest.mark.parametrize("text", ["", "1", "1 2 x", "0 1", "4 1", "a b"])
def test_parse_move_rejects(text):
    with pytest.raises(ValueError):
        cli.parse_move(text, 3)

def test_play_full_game():
    moves = "1 1\n1 1\n2 1 m\n9 9\n1 2 m\n2 2\n"
    result = runner.invoke(app, ["play", "--config", "10,01"], input=moves)
    output = strip_ansi(result.output)
    assert result.exit_code == 0
    assert "already selected" in output
    assert "outside" in output
    assert "Game over!" in output
    assert "Score: 4" in output

def test_play_quit_and_reset():
    result = runner.invoke(app, ["play", "-n", "3", "--seed", "5"], input="1 1\nr\nq\n")
    assert result.exit_code == 0
    assert "Game abandoned" in strip_ansi(result.output)

def test_play_reports_result():
    with patch("piccross.cli.GameClient") as mock_client_cls:
        client = mock_client_cls.return_value.__enter__.return_value
        result = runner.invoke(
            app,
            ["play", "--config", "1", "--report", "--name", "alice", "--port", "4321"],
            input="1 1\n",
        )
    assert result.exit_code == 0
    mock_client_cls.assert_called_once_with(cli.settings.HOST, 4321)
    client.submit_name.assert_called_once_with("alice")
    score_args = client.submit_result.call_args[0]
    assert score_args[1] == 1

def test_play_report_failure_exits():
    with patch("piccross.cli.GameClient") as mock_client_cls:
        mock_client_cls.return_value.__enter__.side_effect = ConnectFailure(FailureKind.PORT, "refused")
        result = runner.invoke(app, ["play", "--config", "1", "--report"], input="1 1\n")
    assert result.exit_code == 1
    assert "Could not report result" in strip_ansi(result.output)

def test_serve_prints_results():
    registry = SessionRegistry()
    registry.update_name(registry.register(), "alice")
    with patch("piccross.cli.run_server", return_value=registry) as mock_serve:
        result = runner.invoke(app, ["serve", "--port", "4000", "--finalize", "--idle-timeout", "0"])
    assert result.exit_code == 0
    mock_serve.assert_called_once_with(cli.settings.HOST, 4000, auto_close=True, idle_timeout=0.0)
    assert "Client 1 (alice) has not finished a game" in result.output

def test_serve_port_in_use():
    with patch("piccross.cli.run_server", side_effect=OSError("Address already in use")):
        result = runner.invoke(app, ["serve"])
    assert result.exit_code == 1
    assert "Could not start server" in strip_ansi(result.output)

def test_serve_rejects_bad_port():
    result = runner.invoke(app, ["serve", "--port", "70000"])
    assert result.exit_code != 0

def test_push_sends_everything():
    with patch("piccross.cli.GameClient") as mock_client_cls:
        client = mock_client_cls.return_value.__enter__.return_value
        result = runner.invoke(
            app, ["push", "--config", "10,01", "--name", "bob", "--time", "20", "--score", "3"]
        )
    assert result.exit_code == 0
    client.submit_name.assert_called_once_with("bob")
    client.submit_config.assert_called_once_with("10,01")
    client.submit_result.assert_called_once_with(20, 3)

def test_push_validates_before_connecting():
    with patch("piccross.cli.GameClient") as mock_client_cls:
        bad_config = runner.invoke(app, ["push", "--config", "12,01"])
        half_result = runner.invoke(app, ["push", "--time", "20"])
    assert bad_config.exit_code == 1
    assert half_result.exit_code == 1
    mock_client_cls.assert_not_called()

def test_fetch_renders_config():
    with patch("piccross.cli.GameClient") as mock_client_cls:
        mock_client_cls.return_value.__enter__.return_value.request_config.return_value = "10,01"
        result = runner.invoke(app, ["fetch"])
    assert result.exit_code == 0
    assert "Received game 10,01" in result.output

def test_fetch_without_saved_game():
    with patch("piccross.cli.GameClient") as mock_client_cls:
        mock_client_cls.return_value.__enter__.return_value.request_config.return_value = None
        result = runner.invoke(app, ["fetch"])
    assert result.exit_code == 0
    assert "no saved game" in strip_ansi(result.output)

def test_fetch_connect_failure():
    with patch("piccross.cli.GameClient") as mock_client_cls:
        mock_client_cls.return_value.__enter__.side_effect = ConnectFailure(
            FailureKind.HOST_UNREACHABLE, "Host name 'x' is invalid"
        )
        result = runner.invoke(app, ["fetch", "--host", "x"])
    assert result.exit_code == 1
    assert "invalid" in strip_ansi(result.output)

def test_main_entrypoint():
    with patch("piccross.cli.app") as m:
        cli.main()
        assert m.called

def test_push_rejects_name_with_separator():
    with patch("piccross.cli.GameClient") as mock_client_cls:
        result = runner.invoke(app, ["push", "--name", "a#b"])
    assert result.exit_code == 1
    assert "Invalid name" in strip_ansi(result.output)
    mock_client_cls.assert_not_called()

def test_play_rejects_reported_name_before_playing():
    with patch("piccross.cli.GameClient") as mock_client_cls:
        result = runner.invoke(app, ["play", "--config", "1", "--report", "--name", "x#y"], input="1 1\n")
    assert result.exit_code == 1
    assert "Game over" not in strip_ansi(result.output)
    mock_client_cls.assert_not_called()
