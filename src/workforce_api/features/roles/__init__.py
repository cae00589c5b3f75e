"""Role assignments and scope resolution."""
