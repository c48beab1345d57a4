"""ZenKeep: a personal organizer for notes and bookmarks."""

__version__ = "1.0.0"
