"""
API Module

FastAPI application and the runtime that owns the core components.
"""

from .app import AncRuntime, create_app, main, error_status

__all__ = [
    "AncRuntime",
    "create_app",
    "main",
    "error_status"
]
