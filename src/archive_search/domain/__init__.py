"""Domain layer for archive search."""
