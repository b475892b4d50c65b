"""Quotation editor core for Hibalogique laboratory services."""

__version__ = "0.1.0"
