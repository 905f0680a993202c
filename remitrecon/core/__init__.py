"""Cross-cutting core services."""
