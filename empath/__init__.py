"""Track file accesses per repository and rank them by frecency."""

__version__ = "0.1.0"
