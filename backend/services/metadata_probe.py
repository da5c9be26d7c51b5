"""
Metadata Probe

Runs ffprobe to obtain the stored frame size, aspect ratios and rotation of
a file's first video stream.
"""
import asyncio
import json
import logging
import re
from fractions import Fraction
from typing import Awaitable, Callable, List, Optional, Tuple

from constants import ExecutionConfig
from domain.value_objects.media_dimensions import MediaDimensions, is_quarter_turn
from exceptions import ProbeError

logger = logging.getLogger(__name__)

# (returncode, stdout, stderr)
ProbeOutput = Tuple[int, str, str]
ProbeRunner = Callable[[List[str]], Awaitable[ProbeOutput]]

_ROTATION_HINT = re.compile(r'rotation of (-?\d+(?:\.\d+)?)')
_MATRIX_ROW = re.compile(r'^\s*[0-9a-fA-F]+:\s+(-?\d+)\s+(-?\d+)\s+(-?\d+)', re.MULTILINE)

# First display-matrix row (16.16 fixed point) -> rotation in degrees
DISPLAY_MATRIX_ROTATIONS = {
    (0, 65536): -90,
    (0, -65536): 90,
    (-65536, 0): 180,
}


def normalize_rotation(value: float) -> float:
    """Snap to ±90/±180 within one degree, otherwise round to whole degrees."""
    for target in (90, -90, 180, -180):
        if abs(value - target) < 1:
            return target
    return round(value)


def rotation_from_display_matrix(matrix: str) -> Optional[int]:
    """Look up the rotation for a textual display matrix dump, or None."""
    if not isinstance(matrix, str):
        return None
    match = _MATRIX_ROW.search(matrix)
    if not match:
        return None
    first_row = (int(match.group(1)), int(match.group(2)))
    return DISPLAY_MATRIX_ROTATIONS.get(first_row)


def _parse_ratio(value: Optional[str]) -> Optional[Fraction]:
    """Parse '16:9' style ratios; '0:1', 'N/A' and junk give None."""
    if not value or ':' not in value:
        return None
    num, _, den = value.partition(':')
    try:
        ratio = Fraction(int(num), int(den))
    except (ValueError, ZeroDivisionError):
        return None
    return ratio if ratio > 0 else None


def corrected_display_size(width: int, height: int, sar: Optional[str], dar: Optional[str]) -> Tuple[int, int]:
    """
    Apply pixel/display aspect correction to a stored frame size.

    A declared display aspect ratio stretches whichever axis it implies;
    otherwise a non-square sample aspect ratio scales the width.
    """
    display_ratio = _parse_ratio(dar)
    if display_ratio is not None:
        stored_ratio = Fraction(width, height)
        if display_ratio > stored_ratio:
            return round(height * display_ratio), height
        if display_ratio < stored_ratio:
            return width, round(width / display_ratio)
        return width, height

    sample_ratio = _parse_ratio(sar)
    if sample_ratio is not None and sample_ratio != 1:
        return round(width * sample_ratio), height

    return width, height


async def run_tool(args: List[str], timeout: float = ExecutionConfig.PROBE_TIMEOUT_SECONDS) -> ProbeOutput:
    """
    Run a short-lived tool to completion and capture its output.

    Raises:
        OSError: The tool could not be started
        asyncio.TimeoutError: The tool did not finish in time (it is killed)
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise
    return (
        process.returncode,
        stdout.decode('utf-8', errors='replace'),
        stderr.decode('utf-8', errors='replace'),
    )


class MetadataProbe:
    """
    ffprobe wrapper.

    Args:
        ffprobe_path: Executable to run
        runner: Coroutine taking an argv list and returning
            (returncode, stdout, stderr); tests substitute a fake
    """

    def __init__(self, ffprobe_path: str = 'ffprobe', runner: Optional[ProbeRunner] = None):
        self.ffprobe_path = ffprobe_path
        self._runner = runner or run_tool

    async def _run(self, *args: str) -> ProbeOutput:
        return await self._runner([self.ffprobe_path, *args])

    async def get_video_rotation(self, file_path: str) -> float:
        """
        Determine the rotation of the first video stream in degrees.

        Tries the side-data "rotation of N" hint first, then a full JSON dump
        (rotate tag, side-data rotation, display matrix). Missing metadata and
        probe failures both resolve to 0.
        """
        try:
            rotation = await self._rotation_from_side_data_hint(file_path)
            if rotation is not None:
                return rotation

            rotation = await self._rotation_from_stream_dump(file_path)
            if rotation is not None:
                return rotation
        except (OSError, asyncio.TimeoutError) as e:
            logger.warning(f"Rotation probe failed for {file_path}: {e}")

        logger.debug(f"No rotation metadata for {file_path}")
        return 0

    async def _rotation_from_side_data_hint(self, file_path: str) -> Optional[float]:
        code, stdout, _ = await self._run(
            '-loglevel', 'error',
            '-show_entries', 'stream=width,height:stream_side_data=displaymatrix',
            '-select_streams', 'v:0',
            '-of', 'default=nw=1',
            file_path,
        )
        if code != 0:
            return None
        match = _ROTATION_HINT.search(stdout)
        if match:
            rotation = normalize_rotation(float(match.group(1)))
            logger.debug(f"Rotation hint for {file_path}: {rotation}")
            return rotation
        return None

    async def _rotation_from_stream_dump(self, file_path: str) -> Optional[float]:
        code, stdout, _ = await self._run(
            '-v', 'quiet',
            '-print_format', 'json',
            '-show_format',
            '-show_streams',
            file_path,
        )
        if code != 0:
            return None
        try:
            data = json.loads(stdout)
        except json.JSONDecodeError as e:
            logger.warning(f"Unreadable stream dump for {file_path}: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Unexpected stream dump for {file_path}: {type(data).__name__}")
            return None

        streams = data.get('streams')
        if not isinstance(streams, list):
            return None

        for stream in streams:
            if not isinstance(stream, dict) or stream.get('codec_type') != 'video':
                continue

            tags = stream.get('tags')
            rotate_tag = tags.get('rotate') if isinstance(tags, dict) else None
            if rotate_tag is not None:
                try:
                    return normalize_rotation(float(rotate_tag))
                except (TypeError, ValueError):
                    logger.debug(f"Ignoring non-numeric rotate tag: {rotate_tag!r}")

            side_data_list = stream.get('side_data_list')
            for side_data in side_data_list if isinstance(side_data_list, list) else []:
                if not isinstance(side_data, dict):
                    continue
                if side_data.get('side_data_type') != 'Display Matrix' and 'displaymatrix' not in side_data:
                    continue
                if side_data.get('rotation') is not None:
                    try:
                        return normalize_rotation(float(side_data['rotation']))
                    except (TypeError, ValueError):
                        pass
                rotation = rotation_from_display_matrix(side_data.get('displaymatrix', ''))
                if rotation is not None:
                    return rotation
        return None

    async def get_media_dimensions(self, file_path: str) -> MediaDimensions:
        """
        Probe stored size, aspect ratios and rotation.

        Returns:
            MediaDimensions; stored width/height are never swapped

        Raises:
            ProbeError: ffprobe missing or failing, unreadable output, or no
                video stream
        """
        try:
            code, stdout, stderr = await self._run(
                '-v', 'error',
                '-select_streams', 'v:0',
                '-show_entries', 'stream=width,height,sample_aspect_ratio,display_aspect_ratio',
                '-of', 'json',
                file_path,
            )
        except OSError as e:
            raise ProbeError(f"Failed to start ffprobe: {e}", file_path=file_path) from e
        except asyncio.TimeoutError as e:
            raise ProbeError("ffprobe timed out", file_path=file_path) from e

        if code != 0:
            raise ProbeError(f"ffprobe exited with code {code}: {stderr.strip()}", file_path=file_path, stderr=stderr)

        try:
            data = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise ProbeError(f"Failed to parse ffprobe output: {e}", file_path=file_path) from e
        if not isinstance(data, dict):
            raise ProbeError(
                f"Failed to parse ffprobe output: expected an object, got {type(data).__name__}",
                file_path=file_path,
            )

        streams = data.get('streams') or []
        if not isinstance(streams, list) or not streams or not isinstance(streams[0], dict):
            raise ProbeError("No video stream found", file_path=file_path)
        if not streams[0].get('width') or not streams[0].get('height'):
            raise ProbeError("No video stream found", file_path=file_path)

        stream = streams[0]
        width, height = int(stream['width']), int(stream['height'])
        sar = stream.get('sample_aspect_ratio')
        dar = stream.get('display_aspect_ratio')
        rotation = await self.get_video_rotation(file_path)

        display_width, display_height = corrected_display_size(width, height, sar, dar)
        if is_quarter_turn(rotation):
            display_width, display_height = display_height, display_width

        dimensions = MediaDimensions(
            width=width,
            height=height,
            rotation=rotation,
            display_width=display_width,
            display_height=display_height,
            sar=sar,
            dar=dar,
        )
        logger.info(f"Probed {file_path}: {width}x{height}, rotation {rotation}, display {display_width}x{display_height}")
        return dimensions
