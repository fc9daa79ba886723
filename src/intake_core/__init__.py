"""Legal lead intake and distribution service."""

__version__ = "0.1.0"
