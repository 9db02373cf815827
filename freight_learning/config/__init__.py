"""Configuration package for Freight Learning."""

from freight_learning.config.settings import settings, Settings

__all__ = ["settings", "Settings"]
