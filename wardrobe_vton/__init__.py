"""Wardrobe try-on: render and critique every top x bottom combination."""

__version__ = "0.1.0"
