"""
Credential lifecycle for the EZVIZ access token.
"""

from .manager import CredentialManager
from .models import Credential, CredentialState

__all__ = ["CredentialManager", "Credential", "CredentialState"]
