"""Single-page webpage health checker."""

__version__ = "0.3.0"
