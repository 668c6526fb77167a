"""Playback synchronization relay: one leader, many followers."""

__version__ = "1.0.0"
