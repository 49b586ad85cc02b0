"""Achievement and level tables."""
