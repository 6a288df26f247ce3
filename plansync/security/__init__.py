"""
Credential protection for Plansync.

Provides authenticated encryption of OAuth tokens stored in the database.
"""

from plansync.security.vault import CredentialVault

__all__ = [
    "CredentialVault",
]
