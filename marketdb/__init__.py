"""Firestore document access layer of the marketplace backend."""

__version__ = "0.1.0"
