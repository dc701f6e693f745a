"""Jellyfin User Manager backend."""

__version__ = "0.1.0"
