"""SQLite database browser core: engine adapter, session state and CLI."""

__version__ = "0.3.0"
