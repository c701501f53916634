"""Per-locale path index for hierarchical site trees."""

__version__ = "0.1.0"
