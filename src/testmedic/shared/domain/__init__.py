"""Domain-level exceptions."""
