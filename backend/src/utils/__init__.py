"""Utility modules for the Bug Report API."""

from .config import Settings, StorageConnection

__all__ = [
    "Settings",
    "StorageConnection",
]
