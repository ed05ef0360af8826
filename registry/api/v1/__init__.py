"""
API v1 package.

Contains versioned API routes for the registry signup lifecycle.
"""

from registry.api.v1.routes import router

__all__ = ["router"]
