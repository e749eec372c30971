"""Agora voting and score-consistency service."""

__version__ = "0.1.0"
