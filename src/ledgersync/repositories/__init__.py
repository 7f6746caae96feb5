"""Repository layer for local persistence."""
