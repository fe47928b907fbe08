"""HTTP and Lambda handlers for the Bug Report API."""

from .api_handler import api_handler, create_app

__all__ = [
    "api_handler",
    "create_app",
]
