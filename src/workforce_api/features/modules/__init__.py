"""Per-user module capability matrix."""
