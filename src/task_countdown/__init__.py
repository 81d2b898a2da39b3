"""Deadline countdown with escalating alarm, chime and notification alerts."""

__version__ = "0.1.0"
