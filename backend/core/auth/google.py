"""
Google OAuth Identity Exchange

Builds the Google authorization URL and turns the callback's authorization
code into a federated identity (email, name, picture, verified flag, Google
user id).

Flow:
1. build_authorization_url(state) -> browser is redirected to Google
2. Google redirects back with ?code=...&state=...
3. exchange_code_for_identity(code, state, expected_state):
   - state is compared in constant time before anything goes on the wire
   - code is exchanged for an access token at the token endpoint
   - access token is used once to fetch the userinfo profile

Each step makes exactly one attempt with the configured timeout.
"""
import logging
import secrets
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlencode

import httpx

from backend.core.errors import (
    ExchangeRejected,
    NetworkError,
    ProfileDecodeError,
    ProfileFetchFailed,
    StateMismatch,
)

logger = logging.getLogger(__name__)

# Google OAuth endpoints
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

DEFAULT_SCOPES = [
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]


@dataclass
class GoogleOAuthConfig:
    client_id: str
    client_secret: str
    redirect_url: str
    scopes: List[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))
    auth_url: str = GOOGLE_AUTH_URL
    token_url: str = GOOGLE_TOKEN_URL
    userinfo_url: str = GOOGLE_USERINFO_URL
    timeout_seconds: float = 10.0

    @classmethod
    def from_settings(cls, settings) -> "GoogleOAuthConfig":
        return cls(
            client_id=settings.google_client_id or "",
            client_secret=settings.google_client_secret or "",
            redirect_url=settings.google_redirect_url or "",
            scopes=settings.google_scopes or list(DEFAULT_SCOPES),
            userinfo_url=settings.google_userinfo or GOOGLE_USERINFO_URL,
            timeout_seconds=settings.oauth_http_timeout_seconds,
        )


@dataclass(frozen=True)
class FederatedIdentity:
    """Profile asserted by Google for the signed-in user."""

    email: str
    display_name: str = ""
    avatar_url: str = ""
    email_verified: bool = False
    subject_id: Optional[str] = None

    @classmethod
    def from_userinfo(cls, data) -> "FederatedIdentity":
        """
        Decode a userinfo response body.

        Accepts both the v2 endpoint fields (id, verified_email) and the
        OpenID Connect ones (sub, email_verified).

        Raises:
            ProfileDecodeError: If the body is not an object or has no email
        """
        if not isinstance(data, dict):
            raise ProfileDecodeError("Failed to parse user info: expected a JSON object")

        email = data.get("email")
        if not isinstance(email, str) or not email.strip():
            raise ProfileDecodeError("Failed to parse user info: missing email")

        verified = data.get("verified_email", data.get("email_verified", False))
        if isinstance(verified, str):
            # Some OIDC responses carry the flag as a string
            verified = verified.lower() == "true"

        subject_id = data.get("id") or data.get("sub")

        return cls(
            email=email.strip(),
            display_name=data.get("name") or "",
            avatar_url=data.get("picture") or "",
            email_verified=bool(verified),
            subject_id=str(subject_id) if subject_id else None,
        )


class GoogleIdentityExchanger:
    """
    Talks to Google's OAuth endpoints.

    The transport argument lets tests substitute httpx.MockTransport.
    """

    def __init__(self, config: GoogleOAuthConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    def build_authorization_url(self, state: str) -> str:
        """
        Generate the Google authorization URL.

        Args:
            state: Anti-forgery value echoed back on the callback

        Returns:
            Full Google OAuth URL for redirect
        """
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_url,
            "response_type": "code",
            "scope": " ".join(self.config.scopes),
            "state": state,
        }
        return f"{self.config.auth_url}?{urlencode(params)}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self.config.timeout_seconds)

    async def exchange_code_for_identity(
        self,
        code: str,
        state: Optional[str],
        expected_state: Optional[str],
    ) -> FederatedIdentity:
        """
        Exchange an authorization code for the user's Google profile.

        Raises:
            StateMismatch: state missing or not the one issued (no network call)
            NetworkError: transport failure or timeout
            ExchangeRejected: token endpoint refused the code
            ProfileFetchFailed: userinfo endpoint returned an error status
            ProfileDecodeError: userinfo body unusable
        """
        if not state or not expected_state or not secrets.compare_digest(
            state.encode("utf-8"), expected_state.encode("utf-8")
        ):
            logger.warning("OAuth callback state did not match an issued state")
            raise StateMismatch()

        async with self._client() as client:
            access_token = await self._exchange_code(client, code)
            return await self._fetch_identity(client, access_token)

    async def _exchange_code(self, client: httpx.AsyncClient, code: str) -> str:
        payload = {
            "code": code,
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "redirect_uri": self.config.redirect_url,
            "grant_type": "authorization_code",
        }

        try:
            response = await client.post(
                self.config.token_url,
                data=payload,
                headers={"Accept": "application/json"},
            )
        except httpx.RequestError as e:
            logger.error(f"Token exchange request failed: {type(e).__name__}")
            raise NetworkError("Failed to reach Google token endpoint") from e

        if not response.is_success:
            logger.warning(f"Token exchange rejected with HTTP {response.status_code}")
            raise ExchangeRejected(f"Token exchange failed (HTTP {response.status_code})")

        try:
            body = response.json()
        except ValueError as e:
            raise ExchangeRejected("Token exchange failed: invalid response body") from e

        access_token = body.get("access_token") if isinstance(body, dict) else None
        if not access_token:
            raise ExchangeRejected("Token exchange failed: no access token returned")

        return access_token

    async def _fetch_identity(self, client: httpx.AsyncClient, access_token: str) -> FederatedIdentity:
        try:
            response = await client.get(
                self.config.userinfo_url,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.RequestError as e:
            logger.error(f"Userinfo request failed: {type(e).__name__}")
            raise NetworkError("Failed to reach Google userinfo endpoint") from e

        if not response.is_success:
            logger.warning(f"Userinfo fetch failed with HTTP {response.status_code}")
            raise ProfileFetchFailed(f"Failed to fetch user info (HTTP {response.status_code})")

        try:
            data = response.json()
        except ValueError as e:
            raise ProfileDecodeError("Failed to parse user info: invalid JSON") from e

        identity = FederatedIdentity.from_userinfo(data)
        logger.info(f"Resolved Google identity for {identity.email}")
        return identity
