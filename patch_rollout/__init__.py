"""Propagate a fixed set of files into many repositories via pull requests."""

__version__ = "0.1.0"
