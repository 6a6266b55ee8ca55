"""Datebook — personal calendar engine with recurrence expansion and conflict checks."""

__version__ = "0.1.0"
