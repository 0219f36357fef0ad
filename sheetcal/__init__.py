"""Sheet -> Calendar sync: mirrors spreadsheet rows into Google Calendar events."""

__version__ = "1.0.0"
