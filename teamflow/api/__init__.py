"""HTTP API for TeamFlow."""

from .server import create_app

__all__ = ["create_app"]
