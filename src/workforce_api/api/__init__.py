"""HTTP surface: shared dependencies and router composition."""
