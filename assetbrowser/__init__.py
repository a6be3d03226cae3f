"""Project asset browser: lazy tree, search and multi-panel host."""

__version__ = "0.1.0"
