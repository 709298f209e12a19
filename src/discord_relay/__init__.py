"""Role-gated Discord relay for posting messages and announcements."""

__version__ = "0.3.0"
