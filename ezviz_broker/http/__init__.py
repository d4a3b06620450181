"""
HTTP server for the EZVIZ broker.
"""

from .app import create_app

__all__ = ["create_app"]
