"""
EZVIZ cloud broker.

Keeps a single EZVIZ access token alive for the whole process and forwards
application requests to the EZVIZ open API with that token injected.
"""

__version__ = "1.0.0"
