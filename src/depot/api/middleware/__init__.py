"""
Middleware for Depot API.

This module contains all middleware components for request/response processing.
"""

from depot.api.middleware.logging import RequestLoggingMiddleware, get_client_ip

__all__ = [
    "RequestLoggingMiddleware",
    "get_client_ip",
]
