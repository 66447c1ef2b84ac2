"""Building blocks for chat bots: status, user contexts, scheduled tasks and config watching."""

__version__ = "0.1.0"