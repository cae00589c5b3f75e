"""Per-session access state."""
