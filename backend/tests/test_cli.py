import socket

from typer.testing import CliRunner

from cli import app, find_free_port, is_port_in_use


def test_find_free_port_skips_busy_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
        busy.bind(("127.0.0.1", 0))
        busy.listen(1)
        port = busy.getsockname()[1]

        assert is_port_in_use("127.0.0.1", port)
        free = find_free_port("127.0.0.1", port, attempts=5)

    assert free is not None
    assert port < free < port + 5


def test_find_free_port_gives_up():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
        busy.bind(("127.0.0.1", 0))
        busy.listen(1)
        port = busy.getsockname()[1]

        assert find_free_port("127.0.0.1", port, attempts=1) is None


def test_help_lists_options():
    result = CliRunner().invoke(app, ["--help"])

    assert result.exit_code == 0
    assert "--no-open" in result.output
    assert "--port" in result.output
