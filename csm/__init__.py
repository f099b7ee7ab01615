"""csm — Claude Sessions Monitor."""

__version__ = "0.2.0"
