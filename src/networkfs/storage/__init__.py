"""Storage layers for external systems."""
