"""Tokenvault — tenant-scoped credential token vault for the marketing dashboard."""

__version__ = "0.1.0"
