"""Layered settings, repository helpers and source-control providers for batch git work."""

__version__ = "0.1.0"