"""Newsletter template and snippet service."""

__version__ = "0.1.0"
