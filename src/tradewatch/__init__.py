"""Polymarket account trade monitor."""

__version__ = "1.0.0"
