"""
Region Value Objects

Immutable rectangles used by the crop-selection feature.
"""

from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class Region:
    """
    Immutable pixel rectangle.

    Coordinates are integers in whichever space the caller works in
    (display space or source/storage space).
    """

    x: int
    y: int
    width: int
    height: int

    def to_dict(self) -> dict:
        """Serialize to a plain dict."""
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: dict) -> "Region":
        """Create a Region from a dict with x/y/width/height keys."""
        return cls(
            x=int(data["x"]),
            y=int(data["y"]),
            width=int(data["width"]),
            height=int(data["height"]),
        )

    def __str__(self) -> str:
        return f"{self.x},{self.y} {self.width}x{self.height}"


@dataclass(frozen=True)
class DisplayRegion:
    """
    A rectangle drawn on a scaled media element in the browser.

    display_width/display_height are the rendered size of the element at
    selection time. A selection is only meaningful for the file it was drawn
    on, so file_path travels with it.
    """

    x: float
    y: float
    width: float
    height: float
    display_width: float
    display_height: float
    file_path: Optional[str] = None

    def __post_init__(self):
        """Validate the rendered surface size."""
        if self.display_width <= 0 or self.display_height <= 0:
            raise ValueError(
                f"Display dimensions must be positive: {self.display_width}x{self.display_height}"
            )

    def belongs_to(self, file_path: str) -> bool:
        """True if the selection was captured on file_path (or is unpaired)."""
        return self.file_path is None or self.file_path == file_path

    def with_file(self, file_path: str) -> "DisplayRegion":
        """Copy of this selection paired with file_path."""
        return replace(self, file_path=file_path)
