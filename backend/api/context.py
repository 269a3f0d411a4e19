"""
Application context.

Long-lived collaborators built once at startup and shared by every request:
the credential signer and verifier, the Google exchanger and the OAuth state
store. Request-scoped objects (database session, UserService, orchestrator)
are assembled from it in backend.api.deps.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import httpx

from backend.core.auth.credentials import CredentialSigner, CredentialVerifier, KeyPair
from backend.core.auth.google import GoogleIdentityExchanger, GoogleOAuthConfig
from backend.core.auth.state_store import OAuthStateStore
from backend.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    signer: CredentialSigner
    verifier: CredentialVerifier
    exchanger: GoogleIdentityExchanger
    state_store: OAuthStateStore


def build_context(
    settings: Settings,
    key_pair: Optional[KeyPair] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AppContext:
    """
    Assemble the application context.

    Args:
        settings: Application settings
        key_pair: Signing key; loaded from settings.rsa_key_path when omitted
        transport: httpx transport for calls to Google (tests pass a MockTransport)

    Raises:
        ConfigurationError: If the signing key cannot be loaded
    """
    if key_pair is None:
        key_pair = KeyPair.from_pem_file(settings.rsa_key_path)

    if not settings.google_client_id or not settings.google_client_secret:
        logger.warning("GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET not set - Google login will fail")

    signer = CredentialSigner(key_pair, ttl=timedelta(hours=settings.session_ttl_hours))
    return AppContext(
        settings=settings,
        signer=signer,
        verifier=signer.verifier,
        exchanger=GoogleIdentityExchanger(GoogleOAuthConfig.from_settings(settings), transport=transport),
        state_store=OAuthStateStore(ttl_seconds=settings.oauth_state_ttl_seconds),
    )
