"""Domain core: role catalog, models and typed errors."""
