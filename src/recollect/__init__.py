"""Recollect - persistent memory engine for conversational assistants."""

__version__ = "0.1.0"
