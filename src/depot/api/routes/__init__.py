"""
API route handlers.

This package contains all route definitions for the Depot API.
"""

from depot.api.routes import publish

__all__ = ["publish"]
