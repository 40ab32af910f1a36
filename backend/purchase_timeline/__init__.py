"""Home purchase timeline backend: step progression, document versioning and analytics."""

__version__ = "0.1.0"
