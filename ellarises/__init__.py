"""Ella Rises staff portal."""

__version__ = '1.0.0'
