"""Shared helpers used across the workforce API service."""
