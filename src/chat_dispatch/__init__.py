"""Chat command dispatch with permissions, rate limiting and de-duplication."""

__version__ = "0.1.0"
