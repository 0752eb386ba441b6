"""Session and points-settlement engine for event engagement."""

__version__ = "0.1.0"
