"""POSPRINT - receipt layout and printing for point-of-sale terminals."""

__version__ = "1.0.0"
