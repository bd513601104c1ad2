"""Conversational scheduling core for advisor consultations."""

__version__ = "0.1.0"
