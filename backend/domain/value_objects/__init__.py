"""
Domain Value Objects

Value objects are immutable types compared by their values, not by ID.

- Region: Pixel rectangle in display or storage orientation
- DisplayRegion: Browser selection plus the rendered size and file it was drawn on
- MediaDimensions: Stored frame size, rotation and derived display size
"""
