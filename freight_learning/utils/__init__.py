"""Utility helpers for Freight Learning."""
