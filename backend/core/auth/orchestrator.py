"""
Login orchestration.

Sequences a Google login from start to finish:
    STARTED -> CALLBACK_RECEIVED -> IDENTITY_RESOLVED -> CREDENTIAL_ISSUED
Any step may end in FAILED, in which case the error is re-raised to the
HTTP layer unchanged.
"""
import enum
import logging
import secrets
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode, urlparse, urlunparse

from backend.core.auth.credentials import CredentialSigner, IssuedCredential
from backend.core.auth.google import FederatedIdentity, GoogleIdentityExchanger
from backend.core.auth.state_store import OAuthStateStore
from backend.core.errors import AppError, LoginDenied, StateMismatch, ValidationError

logger = logging.getLogger(__name__)


class LoginStage(str, enum.Enum):
    STARTED = "started"
    CALLBACK_RECEIVED = "callback_received"
    IDENTITY_RESOLVED = "identity_resolved"
    CREDENTIAL_ISSUED = "credential_issued"
    FAILED = "failed"


class LoginAttempt:
    """Tracks the stage of one login and logs every transition."""

    def __init__(self, stage: LoginStage = LoginStage.STARTED):
        self.stage = stage
        self.reason: Optional[str] = None
        logger.debug(f"Login attempt {stage.value}")

    def advance(self, stage: LoginStage):
        logger.info(f"Login attempt {self.stage.value} -> {stage.value}")
        self.stage = stage

    def fail(self, reason: str):
        logger.warning(f"Login attempt failed at {self.stage.value}: {reason}")
        self.stage = LoginStage.FAILED
        self.reason = reason


@dataclass(frozen=True)
class LoginStart:
    authorization_url: str
    state: str


@dataclass(frozen=True)
class LoginResult:
    identity: FederatedIdentity
    credential: IssuedCredential
    redirect_url: str


def _with_query(base_url: str, params: dict) -> str:
    """Append query parameters, keeping any the base URL already carries."""
    parts = urlparse(base_url)
    query = urlencode(params)
    if parts.query:
        query = f"{parts.query}&{query}"
    return urlunparse(parts._replace(query=query))


class AuthOrchestrator:
    """
    Drives the login flow.

    Args:
        exchanger: Google identity exchanger
        signer: Session credential signer
        state_store: One-time anti-forgery state store
        users: Object providing get_or_create_user (UserService)
        frontend_redirect: URL the browser is sent to after login
    """

    def __init__(
        self,
        exchanger: GoogleIdentityExchanger,
        signer: CredentialSigner,
        state_store: OAuthStateStore,
        users,
        frontend_redirect: str,
    ):
        self.exchanger = exchanger
        self.signer = signer
        self.state_store = state_store
        self.users = users
        self.frontend_redirect = frontend_redirect

    def start_login(self) -> LoginStart:
        """
        Issue a fresh state and build the Google authorization URL.

        The caller hands the state to the browser as well (cookie) so the
        callback can be tied to the browser that started the login.
        """
        attempt = LoginAttempt()
        state = self.state_store.issue()
        url = self.exchanger.build_authorization_url(state)
        logger.info(f"Login attempt {attempt.stage.value}: redirecting to Google")
        return LoginStart(authorization_url=url, state=state)

    async def complete_login(
        self,
        code: Optional[str],
        state: Optional[str],
        browser_state: Optional[str] = None,
        error: Optional[str] = None,
    ) -> LoginResult:
        """
        Handle the OAuth callback.

        Raises:
            LoginDenied: Google reported an error (e.g. access_denied)
            ValidationError: No authorization code supplied
            StateMismatch: State missing, unknown, expired, reused or not
                issued to this browser
            UpstreamError: Token exchange or profile fetch failed
        """
        attempt = LoginAttempt(LoginStage.CALLBACK_RECEIVED)
        try:
            if error:
                raise LoginDenied(f"Login was denied by the identity provider: {error}")
            if not code:
                raise ValidationError("Missing authorization code")
            if not state or not browser_state or not secrets.compare_digest(
                state.encode("utf-8"), browser_state.encode("utf-8")
            ):
                logger.warning("OAuth callback state was not issued to this browser")
                raise StateMismatch()

            expected_state = self.state_store.consume(state)
            identity = await self.exchanger.exchange_code_for_identity(code, state, expected_state)
            attempt.advance(LoginStage.IDENTITY_RESOLVED)

            account = self.users.get_or_create_user(
                email=identity.email,
                name=identity.display_name or identity.email,
                federated_id=identity.subject_id,
                avatar_url=identity.avatar_url,
            )

            credential = self.signer.issue(account.email)
            attempt.advance(LoginStage.CREDENTIAL_ISSUED)
        except AppError as e:
            attempt.fail(f"{type(e).__name__}: {e.message}")
            raise
        except Exception as e:
            attempt.fail(type(e).__name__)
            raise

        redirect_url = _with_query(
            self.frontend_redirect,
            {
                "email": account.email,
                "name": identity.display_name,
                "picture": identity.avatar_url,
                "verified_email": "true" if identity.email_verified else "false",
                "token": credential.token,
                "token_expiry": credential.expires_at_unix,
            },
        )
        logger.info(f"Issued session credential for {account.email}")
        return LoginResult(identity=identity, credential=credential, redirect_url=redirect_url)
