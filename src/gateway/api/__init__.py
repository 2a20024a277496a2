"""
Gateway API Module

FastAPI server exposing the allow-access endpoint of the compliance server.
"""

from .server import app, create_app

__all__ = ["app", "create_app"]
