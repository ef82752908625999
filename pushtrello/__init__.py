import atexit

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from flask import Flask, jsonify
from flask_cors import CORS

from pushtrello.logging_config import configure_logging, get_logger

logger = get_logger(__name__)


def init_scheduler(app, services):
    """Drain deferred jobs in-process; optionally send the log digest."""
    settings = services.settings

    executors = {"default": ThreadPoolExecutor(3)}
    scheduler = BackgroundScheduler(executors=executors)

    def drain_jobs():
        with app.app_context():
            services.dispatcher.process_pending(limit=settings.dispatch_batch_size)

    scheduler.add_job(
        func=drain_jobs,
        trigger="interval",
        seconds=settings.dispatch_poll_seconds,
        id="drain_jobs",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )

    if settings.log_digest_interval_minutes > 0:
        def send_digest():
            with app.app_context():
                services.digest.run()

        scheduler.add_job(
            func=send_digest,
            trigger="interval",
            minutes=settings.log_digest_interval_minutes,
            id="log_digest",
            replace_existing=True,
        )

    scheduler.start()
    atexit.register(lambda: scheduler.shutdown(wait=False))

    logger.info(
        "Scheduler started",
        poll_seconds=settings.dispatch_poll_seconds,
        digest_minutes=settings.log_digest_interval_minutes,
    )
    return scheduler


def create_app(config_class=None, trello=None, parser=None, notifier=None):
    """
    Application factory.

    ``trello``, ``parser`` and ``notifier`` replace the real collaborators
    (the test suite passes mocks).
    """
    # Import config after dotenv is loaded
    from pushtrello.config import Settings, get_config
    from pushtrello.container import EXTENSION_KEY, build_services
    from pushtrello.commits.markup import parse_message
    from pushtrello.db_config import configure_database
    from pushtrello.models import db
    from pushtrello.github.webhook import github_bp
    from pushtrello.admin.routes import admin_bp

    if config_class is None:
        config_class = get_config()

    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(log_level=app.config.get("LOG_LEVEL", "INFO"), log_file=app.config.get("LOG_FILE"))

    # Configure database separately
    configure_database(app)
    db.init_app(app)

    logger.info("Starting application", environment=app.config.get("ENV"))

    settings = Settings.from_mapping(app.config)
    services = build_services(settings, trello=trello, parser=parser or parse_message, notifier=notifier)
    app.extensions[EXTENSION_KEY] = services

    allowed_origins = app.config.get("CORS_ORIGINS", "*")
    if allowed_origins != "*":
        allowed_origins = [origin.strip() for origin in allowed_origins.split(",")]
    CORS(app,
         resources={r"/admin/*": {"origins": allowed_origins}, r"/logview/*": {"origins": allowed_origins}},
         allow_headers=["Content-Type", "X-Admin-Pin"],
         methods=["GET", "POST", "OPTIONS"])

    app.register_blueprint(github_bp)
    app.register_blueprint(admin_bp)

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Answer unexpected errors with JSON."""
        if hasattr(e, 'code') and isinstance(e.code, int):
            status_code = e.code
        else:
            status_code = 500
            logger.error("Unhandled exception", error=str(e), exc_info=True)

        response = jsonify({
            "error": str(e),
            "message": "An error occurred processing your request"
        })
        response.status_code = status_code
        return response

    if app.config.get("AUTO_CREATE_TABLES", True):
        with app.app_context():
            db.create_all()

    if not services.trello.is_configured:
        logger.warning("Trello credentials are not set; card actions will fail until they are")
    if not settings.webhook_secret:
        logger.warning("GITHUB_WEBHOOK_SECRET is not set; every signed push will be rejected")

    if settings.run_scheduler:
        try:
            init_scheduler(app, services)
        except Exception as e:
            logger.error("Failed to start scheduler", error=str(e))

    return app
