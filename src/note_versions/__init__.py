"""note-versions: snapshot history and line restoration for plain-text notes."""

__version__ = "0.1.0"
