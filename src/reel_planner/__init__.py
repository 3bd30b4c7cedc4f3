"""Photo analysis and cinematic sequence planning service."""

__version__ = "0.1.0"
