import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name):
    raw = os.environ.get(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    """Base configuration class with common settings."""
    # Trello configuration
    TRELLO_API_KEY = os.environ.get("TRELLO_API_KEY")
    TRELLO_TOKEN = os.environ.get("TRELLO_TOKEN")
    TRELLO_TIMEOUT_SECONDS = float(os.environ.get("TRELLO_TIMEOUT_SECONDS", "30"))

    # GitHub webhook
    GITHUB_WEBHOOK_SECRET = os.environ.get("GITHUB_WEBHOOK_SECRET")
    # Accept bodies whose HMAC does not match. Only honoured outside production.
    INSECURE_SKIP_SIGNATURE_MISMATCH = _env_flag("INSECURE_SKIP_SIGNATURE_MISMATCH")

    # Comments
    MAX_COMMENT_SIZE = int(os.environ.get("MAX_COMMENT_SIZE", "16384"))  # Trello's comment limit

    # Deferred jobs
    DISPATCH_EAGER = _env_flag("DISPATCH_EAGER")
    RUN_SCHEDULER = _env_flag("RUN_SCHEDULER")
    DISPATCH_POLL_SECONDS = int(os.environ.get("DISPATCH_POLL_SECONDS", "5"))
    DISPATCH_BATCH_SIZE = int(os.environ.get("DISPATCH_BATCH_SIZE", "10"))
    JOB_MAX_RETRIES = int(os.environ.get("JOB_MAX_RETRIES", "5"))
    JOB_LEASE_SECONDS = int(os.environ.get("JOB_LEASE_SECONDS", "300"))

    # Administration
    ADMIN_EMAILS = _env_list("ADMIN_EMAILS")
    ADMIN_PIN = os.environ.get("ADMIN_PIN")
    LOG_DIGEST_WINDOW_HOURS = int(os.environ.get("LOG_DIGEST_WINDOW_HOURS", "2"))
    LOG_DIGEST_INTERVAL_MINUTES = int(os.environ.get("LOG_DIGEST_INTERVAL_MINUTES", "0"))

    # Mail
    SMTP_HOST = os.environ.get("SMTP_HOST")
    SMTP_PORT = int(os.environ.get("SMTP_PORT", "587"))
    SMTP_USER = os.environ.get("SMTP_USER")
    SMTP_PASSWORD = os.environ.get("SMTP_PASSWORD")
    SMTP_FROM = os.environ.get("SMTP_FROM", "pushtrello <noreply@localhost>")

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE")

    # CORS configuration (admin endpoints only)
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    AUTO_CREATE_TABLES = _env_flag("AUTO_CREATE_TABLES", default=True)


class LocalConfig(Config):
    """Configuration for local development."""
    ENV = "local"
    DEBUG = True


class SandboxConfig(Config):
    """Configuration for sandbox/staging environment."""
    ENV = "sandbox"
    DEBUG = False


class ProductionConfig(Config):
    """Configuration for production environment."""
    ENV = "production"
    DEBUG = False
    INSECURE_SKIP_SIGNATURE_MISMATCH = False


class TestingConfig(Config):
    """Configuration for the test suite: in-memory database, inline jobs."""
    ENV = "testing"
    DEBUG = False
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    TRELLO_API_KEY = "test-key"
    TRELLO_TOKEN = "test-token"
    GITHUB_WEBHOOK_SECRET = "test-secret"
    INSECURE_SKIP_SIGNATURE_MISMATCH = False
    MAX_COMMENT_SIZE = 16384
    DISPATCH_EAGER = True
    RUN_SCHEDULER = False
    ADMIN_EMAILS = ["admin@example.com"]
    ADMIN_PIN = "test-pin"
    SMTP_HOST = None
    LOG_FILE = None
    LOG_DIGEST_INTERVAL_MINUTES = 0


def current_environment():
    """Return the normalised environment name from APP_ENV or FLASK_ENV."""
    return (os.environ.get("APP_ENV") or os.environ.get("FLASK_ENV") or "local").lower()


def get_config():
    """Get the appropriate configuration class based on environment variable.

    Environment is determined by APP_ENV or FLASK_ENV variable:
    - 'local' or 'development' -> LocalConfig
    - 'sandbox' or 'staging' -> SandboxConfig
    - 'production' or 'prod' -> ProductionConfig
    - 'testing' or 'test' -> TestingConfig

    Defaults to LocalConfig if not set.
    """
    env = current_environment()

    if env in ["local", "development", "dev"]:
        return LocalConfig
    elif env in ["sandbox", "staging", "stage"]:
        return SandboxConfig
    elif env in ["production", "prod"]:
        return ProductionConfig
    elif env in ["testing", "test"]:
        return TestingConfig
    else:
        # Default to local for safety
        return LocalConfig


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, built once at startup and read-only afterwards."""
    env: str
    trello_api_key: Optional[str]
    trello_token: Optional[str]
    trello_timeout_seconds: float
    webhook_secret: Optional[str]
    skip_signature_mismatch: bool
    max_comment_size: int
    dispatch_eager: bool
    run_scheduler: bool
    dispatch_poll_seconds: int
    dispatch_batch_size: int
    job_max_retries: int
    job_lease_seconds: int
    admin_emails: Tuple[str, ...]
    admin_pin: Optional[str]
    log_digest_window_hours: int
    log_digest_interval_minutes: int
    smtp_host: Optional[str]
    smtp_port: int
    smtp_user: Optional[str]
    smtp_password: Optional[str]
    smtp_from: str

    @classmethod
    def from_mapping(cls, config):
        """Build settings from a Flask config (or any mapping with the same keys)."""
        env = config.get("ENV", "local")
        skip_mismatch = bool(config.get("INSECURE_SKIP_SIGNATURE_MISMATCH", False))
        if env == "production":
            skip_mismatch = False
        return cls(
            env=env,
            trello_api_key=config.get("TRELLO_API_KEY"),
            trello_token=config.get("TRELLO_TOKEN"),
            trello_timeout_seconds=float(config.get("TRELLO_TIMEOUT_SECONDS", 30)),
            webhook_secret=config.get("GITHUB_WEBHOOK_SECRET"),
            skip_signature_mismatch=skip_mismatch,
            max_comment_size=int(config.get("MAX_COMMENT_SIZE", 16384)),
            dispatch_eager=bool(config.get("DISPATCH_EAGER", False)),
            run_scheduler=bool(config.get("RUN_SCHEDULER", False)),
            dispatch_poll_seconds=int(config.get("DISPATCH_POLL_SECONDS", 5)),
            dispatch_batch_size=int(config.get("DISPATCH_BATCH_SIZE", 10)),
            job_max_retries=int(config.get("JOB_MAX_RETRIES", 5)),
            job_lease_seconds=int(config.get("JOB_LEASE_SECONDS", 300)),
            admin_emails=tuple(config.get("ADMIN_EMAILS") or ()),
            admin_pin=config.get("ADMIN_PIN"),
            log_digest_window_hours=int(config.get("LOG_DIGEST_WINDOW_HOURS", 2)),
            log_digest_interval_minutes=int(config.get("LOG_DIGEST_INTERVAL_MINUTES", 0)),
            smtp_host=config.get("SMTP_HOST"),
            smtp_port=int(config.get("SMTP_PORT", 587)),
            smtp_user=config.get("SMTP_USER"),
            smtp_password=config.get("SMTP_PASSWORD"),
            smtp_from=config.get("SMTP_FROM") or "pushtrello <noreply@localhost>",
        )
