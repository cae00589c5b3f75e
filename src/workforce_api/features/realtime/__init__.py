"""Change feed and cache invalidation."""
