"""Developer profile stats aggregation service."""

__version__ = "1.0.0"
