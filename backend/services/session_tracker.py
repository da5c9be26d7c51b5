"""
Execution Session Tracker

Remembers, per client session, which file the next command should read.
Uploading or selecting a file sets it; every successful execution advances
it to that execution's output so commands chain.
"""
import base64
import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from repositories.memory_store import InMemoryStore
from services.interfaces import IKeyValueStore

logger = logging.getLogger(__name__)

SESSION_ID_LENGTH = 16

# Set by the CLI so `uvicorn --reload` workers see the file too
PRECONFIGURED_FILE_ENV = "FFMPEG_CHAT_FILE"


def derive_session_id(client_host: str, user_agent: str) -> str:
    """
    Derive a coarse session id from network identity.

    Not cryptographically meaningful; two clients behind the same address
    with the same browser share a session.
    """
    raw = f"{client_host or ''}{user_agent or ''}".encode('utf-8')
    return base64.b64encode(raw).decode('ascii')[:SESSION_ID_LENGTH]


class ExecutionSessionTracker:
    """Maps session id -> current input file path."""

    def __init__(self, store: Optional[IKeyValueStore[str]] = None):
        self._store = store if store is not None else InMemoryStore()

    def set_current_input_file(self, session_id: str, path: str) -> None:
        """Make path the input for the session's next command."""
        previous = self._store.get(session_id)
        self._store.set(session_id, str(path))
        if previous != str(path):
            logger.info(f"Session {session_id}: input file {previous} -> {path}")

    def get_current_input_file(self, session_id: str) -> Optional[str]:
        """Return the session's current input file, or None."""
        return self._store.get(session_id)

    def session_count(self) -> int:
        return len(self._store)


session_tracker = ExecutionSessionTracker()


@dataclass(frozen=True)
class PreconfiguredFile:
    """A file named on the command line; becomes each session's first input."""

    path: str
    original_name: str
    size: int

    def to_dict(self) -> dict:
        return {
            "originalName": self.original_name,
            "fileName": "preconfigured",
            "filePath": self.path,
            "path": self.path,
            "size": self.size,
            "mimetype": "application/octet-stream",
        }


_preconfigured_file: Optional[PreconfiguredFile] = None


def set_preconfigured_file(file_path: Optional[str]) -> Optional[PreconfiguredFile]:
    """
    Remember a command-line file. Missing files are ignored (logged).

    Returns:
        The stored PreconfiguredFile, or None
    """
    global _preconfigured_file
    if not file_path:
        _preconfigured_file = None
        return None

    path = Path(file_path).expanduser().resolve()
    if not path.is_file():
        logger.warning(f"Pre-configured file not found: {file_path}")
        _preconfigured_file = None
        return None

    _preconfigured_file = PreconfiguredFile(path=str(path), original_name=path.name, size=path.stat().st_size)
    logger.info(f"Pre-configured input file: {path}")
    return _preconfigured_file


def get_preconfigured_file() -> Optional[PreconfiguredFile]:
    if _preconfigured_file is None and os.environ.get(PRECONFIGURED_FILE_ENV):
        return set_preconfigured_file(os.environ[PRECONFIGURED_FILE_ENV])
    return _preconfigured_file
