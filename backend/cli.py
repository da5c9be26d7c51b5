"""
Command-line entry point: `ffmpeg-chat [FILE]`

Starts the API server (and bundled UI) on the first free port, optionally
pre-configuring an input file and opening the browser.
"""
import os
import socket
import threading
import webbrowser
from pathlib import Path
from typing import Optional

import typer

from constants import ServerConfig
from services.session_tracker import PRECONFIGURED_FILE_ENV, set_preconfigured_file

app = typer.Typer(add_completion=False, help="AI chat interface that turns plain language into ffmpeg commands")


def is_port_in_use(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
            return False
        except OSError:
            return True


def find_free_port(host: str, start_port: int, attempts: int = ServerConfig.PORT_ATTEMPTS) -> Optional[int]:
    """First free port in start_port .. start_port + attempts - 1, or None."""
    for port in range(start_port, start_port + attempts):
        if not is_port_in_use(host, port):
            return port
        typer.echo(f"Port {port} is in use, trying port {port + 1}...")
    return None


@app.command()
def serve(
    file: Optional[Path] = typer.Argument(None, help="File to pre-configure (can also use -f/--file)"),
    file_option: Optional[Path] = typer.Option(None, "--file", "-f", help="Pre-configure with a file path"),
    port: int = typer.Option(ServerConfig.PORT, "--port", "-p", help="Port to run the server on"),
    host: str = typer.Option(ServerConfig.HOST, "--host", help="Interface to bind"),
    open_browser: bool = typer.Option(True, "--open/--no-open", help="Open the browser automatically"),
):
    """Start the server."""
    import uvicorn

    target = file or file_option
    if target is not None:
        if set_preconfigured_file(str(target)) is None:
            typer.echo(f"Warning: {target} does not exist; starting without a pre-configured file", err=True)
        else:
            os.environ[PRECONFIGURED_FILE_ENV] = str(target.expanduser().resolve())

    free_port = find_free_port(host, port)
    if free_port is None:
        typer.echo(
            f"Ports {port}-{port + ServerConfig.PORT_ATTEMPTS - 1} are all in use. "
            f"Use --port to pick another.",
            err=True,
        )
        raise typer.Exit(code=1)

    url = ServerConfig.url(free_port)
    typer.echo(f"Server running at {url}")
    if open_browser:
        threading.Timer(1.0, webbrowser.open, args=(url,)).start()

    from main import app as api_app
    uvicorn.run(api_app, host=host, port=free_port)


def main():
    app()


if __name__ == "__main__":
    main()
