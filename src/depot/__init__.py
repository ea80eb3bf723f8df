"""
Depot - Package Registry Publish Service.

Accepts uploaded package artifacts, indexes each package version exactly
once, and manages the listed/unlisted/deleted lifecycle of published versions.
"""

from depot.version import __version__

# API module is available but not exported by default
# Import explicitly: from depot.api import create_app

__all__ = ["__version__"]
