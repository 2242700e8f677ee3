"""Clipt progression, achievement and content boost services."""

__version__ = "0.1.0"
