"""
Application configuration settings loaded from environment variables.
Uses pydantic_settings for validation and type conversion.
"""
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings class with environment variable validation.

    Attributes:
        database_url: SQLAlchemy connection string
        secret_key: Secret key for session token signing
        refresh_secret_key: Separate secret key for refresh token signing
        algorithm: Algorithm used for JWT encoding (typically HS256)
        session_token_expire_hours: Session token lifetime in hours
        refresh_token_expire_days: Refresh token lifetime in days
        verification_code_expire_hours: Lifetime of the emailed verification code
        completion_token_expire_hours: Lifetime of the post-approval completion token
        password_hash_rounds: bcrypt cost factor

        # Email settings
        mail_username: SMTP server username
        mail_password: SMTP server password
        mail_from: Sender email address
        mail_port: SMTP server port
        mail_server: SMTP server hostname
        mail_starttls: Whether to use STARTTLS
        mail_ssl_tls: Whether to use SSL/TLS
        use_credentials: Whether to use credentials for SMTP
        validate_certs: Whether to validate certificates
        notification_max_retries: Delivery attempts per notification
        notification_retry_delay: Initial delay between attempts, doubled each retry

        # Frontend settings
        frontend_url: URL of the frontend application (used in approval links)
        cors_origins: Origins allowed by the CORS middleware

        # Rate limiting
        auth_rate_limit: Requests allowed per client on auth/registration routes
        auth_rate_window_seconds: Rate limit window

        # Bootstrap admin settings (optional)
        bootstrap_admin_email: Optional admin email for first admin creation
        bootstrap_admin_password: Optional admin password for first admin creation
    """
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Database settings
    database_url: str = "sqlite:///./ehr_identity.db"

    # JWT settings
    secret_key: str
    refresh_secret_key: str
    algorithm: str = "HS256"
    session_token_expire_hours: int = 24
    refresh_token_expire_days: int = 7

    # Registration workflow settings
    verification_code_expire_hours: int = 24
    completion_token_expire_hours: int = 12
    password_hash_rounds: int = 12

    # Email settings
    mail_username: Optional[str] = None
    mail_password: Optional[str] = None
    mail_from: Optional[str] = None
    mail_from_name: str = "Chart Breaker EHR"
    mail_port: int = 587
    mail_server: Optional[str] = None
    mail_starttls: bool = True
    mail_ssl_tls: bool = False
    use_credentials: bool = True
    validate_certs: bool = True
    notification_max_retries: int = 3
    notification_retry_delay: float = 2.0

    # Frontend settings
    frontend_url: str = "http://localhost:3000"
    cors_origins: List[str] = ["http://localhost:3000"]

    # Rate limiting on /auth and /registration
    auth_rate_limit: int = 100
    auth_rate_window_seconds: int = 15 * 60

    # Bootstrap admin settings (optional - only used for first admin creation)
    bootstrap_admin_email: Optional[str] = None
    bootstrap_admin_password: Optional[str] = None
    bootstrap_admin_first_name: str = "System"
    bootstrap_admin_last_name: str = "Administrator"

    @property
    def mail_configured(self) -> bool:
        """True when every SMTP setting needed to send mail is present."""
        return all([self.mail_username, self.mail_password, self.mail_from, self.mail_server])


# Create settings instance
settings = Settings()
