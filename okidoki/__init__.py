"""OkiDoki: PRD writer with selection-anchored AI text improvement."""

__version__ = "0.1.0"
