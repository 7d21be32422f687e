"""astrobridge test suite."""
