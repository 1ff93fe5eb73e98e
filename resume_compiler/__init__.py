"""Resume LaTeX compilation service."""

__version__ = "1.0.0"
