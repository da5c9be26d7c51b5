"""
MediaDimensions Value Object

Stored frame size of a video stream plus its rotation metadata and the
derived display size.
"""

from dataclasses import dataclass
from typing import Optional


QUARTER_TURNS = (90, -90)
HALF_TURNS = (180, -180)


def is_quarter_turn(rotation: float) -> bool:
    """True for rotations that swap width and height."""
    return rotation in QUARTER_TURNS


@dataclass(frozen=True)
class MediaDimensions:
    """
    Immutable media dimension record.

    width/height are the encoded (storage) frame size and are never swapped.
    display_width/display_height are after pixel/display aspect correction and
    rotation.
    """

    width: int
    height: int
    rotation: float = 0
    display_width: Optional[int] = None
    display_height: Optional[int] = None
    sar: Optional[str] = None
    dar: Optional[str] = None

    def __post_init__(self):
        """Validate and fill derived display size."""
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Media dimensions must be positive: {self.width}x{self.height}")
        if self.display_width is None or self.display_height is None:
            if is_quarter_turn(self.rotation):
                object.__setattr__(self, 'display_width', self.height)
                object.__setattr__(self, 'display_height', self.width)
            else:
                object.__setattr__(self, 'display_width', self.width)
                object.__setattr__(self, 'display_height', self.height)

    def effective_display_size(self) -> tuple[int, int]:
        """
        Stored size in display orientation.

        Quarter turns swap the stored width/height; aspect correction is not
        applied because crop filters operate on stored pixels.
        """
        if is_quarter_turn(self.rotation):
            return self.height, self.width
        return self.width, self.height

    def to_dict(self) -> dict:
        """Serialize to a plain dict."""
        return {
            "width": self.width,
            "height": self.height,
            "rotation": self.rotation,
            "displayWidth": self.display_width,
            "displayHeight": self.display_height,
            "sar": self.sar,
            "dar": self.dar,
        }
