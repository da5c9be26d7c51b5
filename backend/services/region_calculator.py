"""
Region Calculator

Pure math for the crop-selection feature: maps a rectangle drawn on a
scaled browser preview onto true media pixels, and converts between
display orientation and storage orientation for rotated files.
"""
import re
import math
import logging
from dataclasses import dataclass

from domain.value_objects.region import Region, DisplayRegion
from domain.value_objects.media_dimensions import MediaDimensions, is_quarter_turn
from exceptions import RegionFormatError

logger = logging.getLogger(__name__)

_REGION_PATTERN = re.compile(r'^\s*(-?\d+),(-?\d+)\s+(\d+)x(\d+)\s*$')


@dataclass(frozen=True)
class RegionCalculation:
    """Result of mapping a display selection onto a media file"""

    scaled_region: Region    # true pixels, display orientation
    actual_region: Region    # true pixels, storage orientation
    display_width: int
    display_height: int

    def display_dimensions(self) -> dict:
        return {"width": self.display_width, "height": self.display_height}


def transform_crop_coordinates(region: Region, stored_width: int, stored_height: int, rotation: float) -> Region:
    """
    Map a rectangle from display orientation back to storage orientation.

    Args:
        region: Rectangle in display orientation (true pixels)
        stored_width: Encoded frame width
        stored_height: Encoded frame height
        rotation: Rotation metadata in degrees

    Returns:
        Rectangle in storage orientation. Unknown rotations map to identity.
    """
    x, y, w, h = region.x, region.y, region.width, region.height

    if rotation == 90:
        return Region(x=stored_height - y - h, y=x, width=h, height=w)
    if rotation == -90:
        # stored_height here too, not stored_width
        return Region(x=y, y=stored_height - x - w, width=h, height=w)
    if rotation in (180, -180):
        return Region(x=stored_width - x - w, y=stored_height - y - h, width=w, height=h)
    return region


def _round_half_up(value: float) -> int:
    """Round halves upward, matching browser-side Math.round."""
    return math.floor(value + 0.5)


def scale_region(display_region: DisplayRegion, target_width: int, target_height: int) -> Region:
    """
    Scale a browser selection to a target surface size.

    Each field is rounded independently.
    """
    scale_x = target_width / display_region.display_width
    scale_y = target_height / display_region.display_height

    return Region(
        x=_round_half_up(display_region.x * scale_x),
        y=_round_half_up(display_region.y * scale_y),
        width=_round_half_up(display_region.width * scale_x),
        height=_round_half_up(display_region.height * scale_y),
    )


def calculate_region(display_region: DisplayRegion, dimensions: MediaDimensions) -> RegionCalculation:
    """
    Convert a browser selection into true pixel coordinates.

    Steps:
    1. Effective display size: stored size with width/height swapped for ±90
    2. Independent X/Y scale factors against the rendered element size
    3. Per-field rounding of the scaled rectangle
    4. Rotation transform back to storage orientation

    Args:
        display_region: Selection drawn on the rendered element
        dimensions: Probed media dimensions

    Returns:
        RegionCalculation with both orientations
    """
    display_width, display_height = dimensions.effective_display_size()

    scaled = scale_region(display_region, display_width, display_height)
    actual = transform_crop_coordinates(scaled, dimensions.width, dimensions.height, dimensions.rotation)

    logger.debug(
        f"Region mapping: storage {dimensions.width}x{dimensions.height}, rotation {dimensions.rotation}, "
        f"display {display_width}x{display_height}, element "
        f"{display_region.display_width}x{display_region.display_height}, "
        f"selection {display_region.x},{display_region.y} {display_region.width}x{display_region.height} "
        f"-> scaled {scaled} -> actual {actual}"
    )

    return RegionCalculation(
        scaled_region=scaled,
        actual_region=actual,
        display_width=display_width,
        display_height=display_height,
    )


def map_display_region(display_region: DisplayRegion, source_width: int, source_height: int, rotation: float) -> Region:
    """
    Single-pass variant for callers that only know the stored size.

    Scales against the rotation-adjusted stored size and applies the same
    rotation transform as calculate_region in one call.
    """
    if is_quarter_turn(rotation):
        target_width, target_height = source_height, source_width
    else:
        target_width, target_height = source_width, source_height

    scaled = scale_region(display_region, target_width, target_height)
    return transform_crop_coordinates(scaled, source_width, source_height, rotation)


def validate_region(region: Region, width: int, height: int) -> bool:
    """
    Check that a region lies fully inside a width x height frame.

    Returns:
        False for non-positive size, negative origin, or overflow
    """
    return not (
        region.x < 0
        or region.y < 0
        or region.width <= 0
        or region.height <= 0
        or region.x + region.width > width
        or region.y + region.height > height
    )


def format_region_string(region: Region) -> str:
    """Render a region as 'x,y WIDTHxHEIGHT'."""
    return f"{region.x},{region.y} {region.width}x{region.height}"


def parse_region_string(value: str) -> Region:
    """
    Parse 'x,y WIDTHxHEIGHT' into a Region.

    Raises:
        RegionFormatError: If the string does not match the format
    """
    match = _REGION_PATTERN.match(value or '')
    if not match:
        raise RegionFormatError(value)
    x, y, width, height = (int(group) for group in match.groups())
    return Region(x=x, y=y, width=width, height=height)


def to_crop_filter(region: Region) -> str:
    """Render a region as an ffmpeg crop filter: crop=w:h:x:y."""
    return f"crop={region.width}:{region.height}:{region.x}:{region.y}"
