"""Workforce dashboard access-control and approval API."""

__version__ = "0.1.0"
