"""Persona memory service: lore archive and conversation memory for persona chat."""

__version__ = "0.3.0"
