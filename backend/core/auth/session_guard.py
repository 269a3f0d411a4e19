"""
Bearer credential checks for protected endpoints.

Framework independent; backend.api.deps wraps it as a FastAPI dependency.
"""
import logging
from typing import Optional

from backend.core.auth.credentials import CredentialVerifier, SessionClaims
from backend.core.errors import MalformedHeader, MissingCredential

logger = logging.getLogger(__name__)


def extract_bearer_token(header: Optional[str]) -> str:
    """
    Pull the token out of an Authorization header.

    Raises:
        MissingCredential: Header absent or blank
        MalformedHeader: Not exactly "Bearer <token>"
    """
    if header is None or not header.strip():
        raise MissingCredential()

    parts = header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise MalformedHeader()

    return parts[1]


class SessionGuard:
    def __init__(self, verifier: CredentialVerifier):
        self.verifier = verifier

    def authenticate(self, header: Optional[str]) -> SessionClaims:
        """Verify the bearer credential; verifier errors propagate unchanged."""
        token = extract_bearer_token(header)
        return self.verifier.verify(token)
