"""Bulk import of case records from CSV uploads into a case store."""

__version__ = "0.1.0"
