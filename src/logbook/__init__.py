"""logbook: full-text search over AI coding agent conversation logs."""

__version__ = "0.1.0"
