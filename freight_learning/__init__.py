"""Freight Learning - customer conversation learning for the freight analytics assistant."""

__version__ = "0.1.0"
