"""
Configuration Management

Centralized configuration using Pydantic Settings.
All settings loaded from environment variables (or a .env file) with sensible defaults.
"""
from typing import Optional, List
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Ignore extra environment variables that aren't defined in the model
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ============================================================
    # Google OAuth Configuration
    # ============================================================
    google_client_id: Optional[str] = Field(None, description="Google OAuth client ID")
    google_client_secret: Optional[str] = Field(None, description="Google OAuth client secret")
    google_redirect_url: Optional[str] = Field(
        None,
        description="Callback URL registered with Google (points at /api/auth/google/callback)"
    )
    google_userinfo_email: str = Field(
        "https://www.googleapis.com/auth/userinfo.email",
        description="Email scope identifier"
    )
    google_userinfo_profile: str = Field(
        "https://www.googleapis.com/auth/userinfo.profile",
        description="Profile scope identifier"
    )
    google_userinfo: str = Field(
        "https://www.googleapis.com/oauth2/v2/userinfo",
        description="Userinfo endpoint used to fetch the federated profile"
    )
    oauth_http_timeout_seconds: float = Field(10.0, description="Timeout for each call to the provider")
    oauth_state_ttl_seconds: int = Field(600, description="Lifetime of an anti-forgery state value")

    # Where the browser is sent after a successful login
    frontend_redirect: str = Field(
        "http://localhost:3000/auth/callback",
        description="Frontend URL receiving the session credential as query parameters"
    )

    # ============================================================
    # Session Credentials
    # ============================================================
    rsa_key_path: str = Field("rsa.pem", description="Path to PEM encoded RSA private signing key")
    session_ttl_hours: int = Field(2, description="Lifetime of an issued session credential")

    # ============================================================
    # Database Configuration
    # ============================================================
    database_url: Optional[str] = Field(None, description="Full SQLAlchemy URL (overrides DB_* parts)")
    db_host: str = Field("localhost", description="PostgreSQL host")
    db_port: int = Field(5432, description="PostgreSQL port")
    db_user: Optional[str] = Field(None, description="PostgreSQL user")
    db_password: Optional[str] = Field(None, description="PostgreSQL password")
    db_name: Optional[str] = Field(None, description="PostgreSQL database name")
    db_sslmode: str = Field("disable", description="PostgreSQL sslmode")
    database_pool_size: int = Field(10, description="Database connection pool size")
    database_max_overflow: int = Field(90, description="Max overflow connections")

    # ============================================================
    # API Configuration
    # ============================================================
    port: int = Field(8080, description="API server port")
    allowed_origins: str = Field(
        "http://localhost:3000",
        description="Comma-separated CORS allowed origins"
    )
    rate_limit_requests: int = Field(100, description="Requests allowed per client per window")
    rate_limit_window_seconds: int = Field(60, description="Rate limit window length")

    # ============================================================
    # Logging Configuration
    # ============================================================
    log_level: str = Field("INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    log_format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string"
    )

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse allowed origins into list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def google_scopes(self) -> List[str]:
        return [s for s in (self.google_userinfo_email, self.google_userinfo_profile) if s]

    @property
    def database_dsn(self) -> Optional[str]:
        """
        SQLAlchemy URL for the account store.

        DATABASE_URL wins when set; otherwise the URL is assembled from the
        DB_* parts. Returns None when neither is configured.
        """
        if self.database_url:
            url = self.database_url
            # Railway and Heroku hand out postgres:// URLs
            if url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql://", 1)
            return url

        if not (self.db_user and self.db_name):
            return None

        credentials = quote_plus(self.db_user)
        if self.db_password:
            credentials += ":" + quote_plus(self.db_password)
        return (
            f"postgresql://{credentials}@{self.db_host}:{self.db_port}/{self.db_name}"
            f"?sslmode={self.db_sslmode}"
        )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings (singleton).

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings():
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings
