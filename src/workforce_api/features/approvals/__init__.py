"""Leveled approval workflow for vacation requests."""
