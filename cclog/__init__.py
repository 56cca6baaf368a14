"""Convert and browse Claude Code session logs."""

__version__ = "0.3.0"
