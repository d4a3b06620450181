"""
HTTP routes for the EZVIZ broker API.
"""

from .ezviz import EzvizController
from .proxy import ProxyController

__all__ = [
    "EzvizController",
    "ProxyController",
]
