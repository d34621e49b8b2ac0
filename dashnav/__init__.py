"""Dashboard navigation with conversational route modification."""

__version__ = "0.1.0"
