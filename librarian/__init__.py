"""Librarian module for methodology knowledge."""

from .librarian import Librarian

__all__ = ["Librarian"]
