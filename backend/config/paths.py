"""
Filesystem locations used by the application.

Resolves the per-platform application data directory (settings database,
logs, materialized binaries) and the dedicated temp directory that holds
uploaded inputs and generated outputs.
"""
import os
import sys
import tempfile
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

APP_NAME = "FFmpegChat"
APP_SLUG = "ffmpeg-chat"


def get_config_dir() -> Path:
    """
    Get the platform-appropriate application data directory.

    FFMPEG_CHAT_HOME overrides the platform default (used by tests).

    Returns:
        Path to the directory (created if missing)
    """
    override = os.environ.get('FFMPEG_CHAT_HOME')
    if override:
        config_dir = Path(override)
    elif sys.platform == 'darwin':
        config_dir = Path.home() / "Library/Application Support" / APP_NAME
    elif sys.platform == 'win32':
        appdata = os.environ.get('APPDATA') or str(Path.home() / "AppData/Roaming")
        config_dir = Path(appdata) / APP_NAME
    else:
        xdg_config = os.environ.get('XDG_CONFIG_HOME') or str(Path.home() / ".config")
        config_dir = Path(xdg_config) / APP_SLUG

    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_log_dir() -> Path:
    """Get the log directory inside the application data directory."""
    log_dir = get_config_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_bin_dir() -> Path:
    """Directory that bundled binaries are materialized into."""
    bin_dir = get_config_dir() / "bin"
    bin_dir.mkdir(parents=True, exist_ok=True)
    return bin_dir


def get_tmp_dir() -> Path:
    """
    Get the dedicated temp directory for intermediate files and uploads.

    FFMPEG_CHAT_TMP overrides the default <system tmp>/ffmpeg-chat.
    """
    override = os.environ.get('FFMPEG_CHAT_TMP')
    tmp_dir = Path(override) if override else Path(tempfile.gettempdir()) / APP_SLUG
    if not tmp_dir.exists():
        tmp_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created temp directory: {tmp_dir}")
    return tmp_dir
