"""Product domain exceptions."""

from __future__ import annotations


class ProductNotFound(Exception):
    """The requested product does not exist."""


class InsufficientStock(Exception):
    """Not enough stock to reserve the requested quantity."""
