"""Org hierarchy read model."""
