"""
FFmpeg Binary Helper

Resolves the ffmpeg/ffprobe executables to run.

Resolution order:
1. A user-configured path (settings)
2. A binary shipped inside a PyInstaller bundle, copied to the per-user
   bin directory and made executable (the bundle dir may be read-only)
3. The tool found on PATH
4. The bare tool name, so spawn errors surface with a clear message
"""
import os
import sys
import shutil
import stat
import logging
from pathlib import Path
from typing import Optional

from config.paths import get_bin_dir

logger = logging.getLogger(__name__)

BUNDLED_DIR_NAME = 'ffmpeg_bins'


def _executable_name(binary_name: str) -> str:
    if sys.platform == 'win32' and not binary_name.lower().endswith('.exe'):
        return f"{binary_name}.exe"
    return binary_name


def get_bundled_binary_path(binary_name: str) -> Optional[Path]:
    """
    Locate a binary shipped with the application.

    Args:
        binary_name: 'ffmpeg' or 'ffprobe'

    Returns:
        Path inside the bundle (or the repository's ffmpeg_bins/ in
        development), or None if not shipped
    """
    if getattr(sys, 'frozen', False):
        # Running as PyInstaller bundle
        base_path = Path(sys._MEIPASS)
    else:
        # Running in development
        base_path = Path(__file__).parent.parent.parent

    binary_path = base_path / BUNDLED_DIR_NAME / _executable_name(binary_name)
    logger.debug(f"Looking for bundled {binary_name}: {binary_path}")
    return binary_path if binary_path.is_file() else None


def materialize_binary(source: Path, bin_dir: Optional[Path] = None) -> Path:
    """
    Copy a bundled binary to a writable location and set the executable bit.

    The copy is refreshed when the bundled file's size differs from the
    existing copy.
    """
    bin_dir = bin_dir or get_bin_dir()
    target = bin_dir / source.name

    if not target.exists() or target.stat().st_size != source.stat().st_size:
        shutil.copy2(source, target)
        logger.info(f"Copied bundled {source.name} to {target}")

    mode = target.stat().st_mode
    target.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return target


def resolve_tool_path(binary_name: str, custom_path: Optional[str] = None) -> str:
    """
    Pick the executable to run for binary_name.

    Args:
        binary_name: 'ffmpeg' or 'ffprobe'
        custom_path: User-configured path; wins when non-empty

    Returns:
        Path or bare command name. Never raises.
    """
    if custom_path and custom_path.strip():
        logger.info(f"Using configured {binary_name}: {custom_path.strip()}")
        return custom_path.strip()

    bundled = get_bundled_binary_path(binary_name)
    if bundled is not None:
        try:
            path = str(materialize_binary(bundled))
            logger.info(f"Using bundled {binary_name}: {path}")
            return path
        except OSError as e:
            logger.warning(f"Could not prepare bundled {binary_name} ({e}); falling back to PATH")

    found = shutil.which(binary_name)
    if found:
        logger.info(f"Using {binary_name} from PATH: {found}")
        return found

    logger.warning(f"{binary_name} not found on PATH; using bare command name")
    return binary_name


def get_ffmpeg_path(custom_path: Optional[str] = None) -> str:
    """Get the ffmpeg executable to run."""
    return resolve_tool_path('ffmpeg', custom_path or os.environ.get('FFMPEG_PATH'))


def get_ffprobe_path(custom_path: Optional[str] = None) -> str:
    """Get the ffprobe executable to run."""
    return resolve_tool_path('ffprobe', custom_path or os.environ.get('FFPROBE_PATH'))
