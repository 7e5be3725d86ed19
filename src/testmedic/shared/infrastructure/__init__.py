"""Infrastructure services shared by all modules."""
