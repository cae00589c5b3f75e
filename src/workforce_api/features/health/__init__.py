"""Liveness and database readiness probe."""
