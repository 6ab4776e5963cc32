"""Scan directory trees into a sorted in-memory index and store it in a binary file."""

__version__ = "0.9.0"