"""Feature packages: one directory per capability."""
