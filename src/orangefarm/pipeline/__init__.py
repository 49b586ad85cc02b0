"""Change feed, snapshots and shared helpers for the progression handlers."""
