"""
Image processing infrastructure.

Resizes and re-encodes uploaded images with Pillow to produce the
WebP variants stored next to each original.
"""

from .resizer import PillowImageResizer

__all__ = ["PillowImageResizer"]
