"""Sync InfoFlow articles, highlights and notes into a Markdown vault."""

__version__ = "1.6.0"
