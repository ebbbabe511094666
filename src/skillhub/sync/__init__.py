"""Git working-copy synchronization."""
