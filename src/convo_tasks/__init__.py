"""Sequential conversational task groups with regression support."""

__version__ = "0.1.0"
