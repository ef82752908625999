from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from pushtrello.logging_config import get_logger
logger = get_logger(__name__)

LEVEL_ORDER = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}


class SystemLogService:
    """Service for system-level logging to the database"""

    @staticmethod
    def _write(level, category, operation, error, context=None):
        from pushtrello.models import SystemLog, db

        system_log = SystemLog(
            timestamp=datetime.utcnow(),
            level=level,
            category=category,
            operation=operation,
            message=str(error),
            context={
                'error_type': type(error).__name__ if isinstance(error, BaseException) else None,
                **(context or {})
            }
        )
        try:
            db.session.add(system_log)
            db.session.commit()  # Separate transaction
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.warning(
                "Failed to write system log entry",
                error=str(e),
                category=category,
                operation=operation,
                message=str(error),
            )
            return None
        return system_log

    @staticmethod
    def log_error(category, operation, error, context=None):
        """Log system error to database"""
        logger.error("System error", category=category, operation=operation, error=str(error), **(context or {}))
        return SystemLogService._write('ERROR', category, operation, error, context)

    @staticmethod
    def log_warning(category, operation, error, context=None):
        """Log a non-fatal problem to database"""
        logger.warning("System warning", category=category, operation=operation, error=str(error), **(context or {}))
        return SystemLogService._write('WARNING', category, operation, error, context)

    @staticmethod
    def recent(min_level='ERROR', window=timedelta(hours=2), now=None):
        """Entries at or above min_level within the trailing window, oldest first."""
        from pushtrello.models import SystemLog

        now = now or datetime.utcnow()
        threshold = LEVEL_ORDER.get(min_level.upper(), LEVEL_ORDER['ERROR'])
        levels = [name for name, value in LEVEL_ORDER.items() if value >= threshold]
        return (
            SystemLog.query
            .filter(SystemLog.timestamp >= now - window, SystemLog.level.in_(levels))
            .order_by(SystemLog.timestamp.asc(), SystemLog.id.asc())
            .all()
        )
