"""Versioned migration of legacy mail client preferences."""

__version__ = "0.1.0"
