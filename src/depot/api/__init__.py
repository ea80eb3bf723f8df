"""
Depot API Module.

REST API for publishing, deleting and relisting packages.
"""

from depot.api.app import create_app

__all__ = ["create_app"]
