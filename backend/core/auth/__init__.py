"""
Authentication for the API.

- credentials: RS256 session credentials (sign / verify)
- google: Google OAuth code exchange and profile fetch
- state_store: one-time anti-forgery state values
- orchestrator: login flow from redirect to issued credential
- session_guard: bearer credential checks for protected routes
"""

from .credentials import CredentialSigner, CredentialVerifier, KeyPair, SessionClaims
from .session_guard import SessionGuard

__all__ = ['CredentialSigner', 'CredentialVerifier', 'KeyPair', 'SessionClaims', 'SessionGuard']
