"""Application configuration loaded from environment variables.

Settings for the database, cookies, OAuth providers, and the email/SMS
gateways. Uses pydantic-settings for validation and .env file support.

A single Settings instance is assembled by create_app() and handed to every
component that needs it. Missing provider or gateway credentials switch the
matching feature off instead of failing startup.
"""

from typing import Literal

from pydantic import AliasChoices, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "heartguide_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32

# Fallback when neither APP_URL nor VERCEL_URL is set
LOCAL_BASE_URL = "http://localhost:3000"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "heartguide"
    database_user: str = "heartguide_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD
    # Full SQLAlchemy URL; when set it wins over the database_* parts
    database_dsn: str = ""

    # CORS (Security)
    # CRITICAL: Never set to ["*"] when allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Deployment URL resolution (see get_base_url)
    app_url: str = Field(
        default="",
        validation_alias=AliasChoices("app_url", "next_public_app_url"),
    )
    vercel_url: str = ""

    # Where the browser lands after OAuth sign-in, relative to the base URL
    oauth_success_path: str = "/dashboard"
    oauth_error_path: str = "/login"

    # Sessions
    auth_secret: SecretStr = SecretStr("")
    session_cookie_name: str = "session"
    admin_hint_cookie_name: str = "is_admin"
    session_cookie_secure: bool = True
    session_cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    session_cookie_domain: str = ""
    session_ttl_hours: int = 24
    remember_me_ttl_days: int = 30
    # bcrypt cost factor
    bcrypt_rounds: int = 12

    # One-time codes and reset tokens
    code_ttl_minutes: int = 15
    code_length: int = 6
    code_max_attempts: int = 5
    code_resend_cooldown_seconds: int = 60
    reset_token_ttl_minutes: int = 60

    # OAuth providers
    google_client_id: str = ""
    google_client_secret: SecretStr = SecretStr("")
    github_client_id: str = ""
    github_client_secret: SecretStr = SecretStr("")
    facebook_client_id: str = ""
    facebook_client_secret: SecretStr = SecretStr("")

    # Email gateway (Resend)
    email_from: str = "HeartGuide <noreply@heartguide.app>"
    resend_api_key: SecretStr = SecretStr("")

    # SMS gateway (Twilio)
    twilio_account_sid: str = ""
    twilio_auth_token: SecretStr = SecretStr("")
    twilio_phone_number: str = ""

    # Rate Limiting (Security)
    # Format: "count/period" (e.g., "10/minute", "5/15minute")
    rate_limit_enabled: bool = True

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        if self.database_dsn:
            return self.database_dsn
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return self.database_url.replace("+asyncpg", "").replace("+aiosqlite", "")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate production security requirements.

        Security: Prevents deployment with known insecure defaults.
        Checks:
        - SameSite=None requires Secure flag (browser requirement)
        - CORS must not use wildcard origin (incompatible with credentials)
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars in production
        """
        if self.session_cookie_samesite == "none" and not self.session_cookie_secure:
            msg = (
                "SESSION_COOKIE_SECURE must be true when SESSION_COOKIE_SAMESITE=none. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "This application uses credentials (cookies) which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.code_length < 4:
            msg = f"CODE_LENGTH must be at least 4. Got: {self.code_length}"
            raise ValueError(msg)

        if self.is_production:
            if not self.database_dsn and (
                self.database_password == _INSECURE_DEFAULT_PASSWORD
            ):
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            secret_value = self.auth_secret.get_secret_value()
            if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    "characters in production. "
                    'Generate with: python -c "import secrets; '
                    'print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)

        return self


def get_base_url(settings: Settings) -> str:
    """Resolve the public base URL of the deployment.

    Precedence: explicit APP_URL, then the platform deployment host
    (VERCEL_URL, always served over https), then the local default.
    OAuth providers compare redirect URIs byte-for-byte, so the order
    must not change.

    Args:
        settings: Application settings.

    Returns:
        Base URL without a trailing slash.
    """
    if settings.app_url:
        return settings.app_url.rstrip("/")
    if settings.vercel_url:
        host = settings.vercel_url.removeprefix("https://").removeprefix("http://")
        return f"https://{host.rstrip('/')}"
    return LOCAL_BASE_URL
