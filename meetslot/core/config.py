from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str
    database_ssl: bool = True  # only applied to asyncpg URLs

    # JWT
    secret_key: str
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Scheduling policy
    min_duration_minutes: int = 15
    max_duration_minutes: int = 240
    default_duration_minutes: int = 60
    default_booking_horizon_days: int = 30
    # Pending holds stop blocking availability after this long
    booking_request_ttl_minutes: int = 30
    request_expiry_interval_seconds: int = 300
    # Per-provider bound on external calendar lookups
    calendar_timeout_seconds: float = 5.0

    # Google Calendar
    google_client_id: str = ""
    google_client_secret: str = ""

    # Microsoft Graph
    microsoft_client_id: str = ""
    microsoft_client_secret: str = ""
    microsoft_redirect_uri: str = ""

    # Env
    env: str = "development"

    # Email (SMTP). Leave smtp_host empty to disable sending.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""
    from_name: str = "meetslot"
    site_name: str = "meetslot"
    # Used to build booking-request confirmation links
    public_base_url: str = "http://localhost:8000"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password and self.from_email)


settings = Settings()
