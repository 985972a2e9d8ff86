"""Client-side access layer for the QBank folder API."""

__version__ = "0.1.0"
