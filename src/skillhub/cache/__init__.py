"""On-disk registry snapshot cache."""
