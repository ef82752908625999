"""Database URL and engine options per environment."""
import os

from pushtrello.config import current_environment

# Environment variables consulted, in order, for each deployed environment
DATABASE_URL_VARS = {
    "sandbox": ("SANDBOX_DATABASE_URL",),
    "production": ("PRODUCTION_DATABASE_URL", "DATABASE_URL"),
}

ENVIRONMENT_ALIASES = {
    "staging": "sandbox",
    "stage": "sandbox",
    "prod": "production",
}


def get_database_engine_options():
    """Pool settings for PostgreSQL shared by request workers and scheduler threads."""
    return {
        "pool_pre_ping": True,        # Detect and refresh dead connections before use
        "pool_recycle": 280,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "connect_args": {
            "sslmode": "require",
            "connect_timeout": 10,
            "application_name": "pushtrello",
        },
    }


def normalize_database_url(url):
    """SQLAlchemy expects postgresql:// rather than the legacy postgres:// scheme."""
    if url and url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def get_database_config(environment=None):
    """Get database configuration based on environment.

    Local development (and any unknown environment) falls back to a sqlite
    file. Sandbox and production must name their database explicitly.

    Returns:
        tuple: (database_uri, engine_options)

    Raises:
        ValueError: If a deployed environment has no database URL
    """
    if environment is None:
        environment = current_environment()
    environment = ENVIRONMENT_ALIASES.get(environment, environment)

    names = DATABASE_URL_VARS.get(environment)
    if names is None:
        database_uri = os.environ.get("LOCAL_DATABASE_URL") or "sqlite:///pushtrello.sqlite"
        return normalize_database_url(database_uri), None

    database_url = next((os.environ[name] for name in names if os.environ.get(name)), None)
    if not database_url:
        raise ValueError(f"{' or '.join(names)} must be set for {environment} environment")
    return normalize_database_url(database_url), get_database_engine_options()


def configure_database(app):
    """Configure database settings for the Flask app.

    A SQLALCHEMY_DATABASE_URI already present on the config class (the test
    configuration sets one) wins over the environment lookup.
    """
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["SQLALCHEMY_ECHO"] = False

    if app.config.get("SQLALCHEMY_DATABASE_URI"):
        return

    database_uri, engine_options = get_database_config(app.config.get("ENV"))
    app.config["SQLALCHEMY_DATABASE_URI"] = database_uri
    if engine_options:
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options
