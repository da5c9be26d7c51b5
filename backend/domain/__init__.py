"""
Domain Layer

Value types for the crop-selection feature, kept free of process and HTTP
concerns.

Structure:
- value_objects/: Immutable rectangles and media dimensions
"""
