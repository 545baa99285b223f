"""Flatten a project directory into a single XML document."""

__version__ = "1.0.0"
