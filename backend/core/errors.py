"""
Error Taxonomy

Every error raised by the service carries the HTTP status it maps to and a
message that is safe to show to clients. The API layer renders them as
{"error": "<message>"}.

Usage:
    from backend.core.errors import NotFoundError

    raise NotFoundError("user with id 42 not found")
"""
from typing import Optional


class AppError(Exception):
    """Base class for all service errors."""

    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ============================================================================
# Configuration (startup only, fatal)
# ============================================================================

class ConfigurationError(AppError):
    """Bad signing key, bad database DSN or missing required setting."""
    default_message = "Service misconfigured"


class KeyUnavailable(ConfigurationError):
    """A credential was requested but no signing key was loaded."""
    default_message = "Signing key not loaded"


# ============================================================================
# Client input
# ============================================================================

class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class ConflictError(ValidationError):
    status_code = 409
    default_message = "Resource already exists"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class RateLimitExceeded(AppError):
    status_code = 429
    default_message = "Rate limit exceeded"

    def __init__(self, message: Optional[str] = None, retry_after: int = 60):
        super().__init__(message)
        self.retry_after = retry_after


# ============================================================================
# Authentication
# ============================================================================

class AuthenticationError(AppError):
    status_code = 401
    default_message = "Not authenticated"


class MissingCredential(AuthenticationError):
    default_message = "Missing Authorization header"


class MalformedHeader(AuthenticationError):
    default_message = "Authorization header format must be Bearer {token}"


class MalformedToken(AuthenticationError):
    default_message = "Malformed token"


class SignatureInvalid(AuthenticationError):
    default_message = "Invalid token signature"


class Expired(AuthenticationError):
    default_message = "Token has expired"


class StateMismatch(AuthenticationError):
    status_code = 400
    default_message = "state parameter doesn't match"


class LoginDenied(AuthenticationError):
    """The identity provider reported an error on the callback."""
    status_code = 400
    default_message = "Login was denied by the identity provider"


# ============================================================================
# Identity provider
# ============================================================================

class UpstreamError(AppError):
    status_code = 502
    default_message = "Identity provider error"


class NetworkError(UpstreamError):
    """Transport failure or timeout talking to the provider."""
    status_code = 504
    default_message = "Identity provider unreachable"


class ExchangeRejected(UpstreamError):
    default_message = "Token exchange failed"


class ProfileFetchFailed(UpstreamError):
    default_message = "Failed to fetch user info"


class ProfileDecodeError(UpstreamError):
    default_message = "Failed to parse user info"
