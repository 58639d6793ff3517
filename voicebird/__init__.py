"""Voice gateway connection state and audio input streams for voice chat bots."""

__version__ = "0.1.0"