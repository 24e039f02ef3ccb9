"""Pobo API integration: paginated sync client and signed webhook receiver."""

__version__ = "0.1.0"
