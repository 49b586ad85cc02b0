"""Orange Farm game-progression event pipeline."""

__version__ = "0.1.0"
