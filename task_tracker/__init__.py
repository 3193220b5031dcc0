"""Task Tracker: personal task management with synced task lists and reminders."""

__all__ = ["__version__"]

__version__ = "0.1.0"
