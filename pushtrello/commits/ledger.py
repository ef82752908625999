from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from pushtrello.errors import LedgerLookupError
from pushtrello.logging_config import get_logger
from pushtrello.models import ActionRecord, db

logger = get_logger(__name__)


class ActionLedger:
    """Completion records keyed by idempotence key (card reference + commit url)."""

    def is_applied(self, key: str) -> bool:
        """
        Return True when an OK record exists for key.

        Raises:
            LedgerLookupError: the store could not be queried. This is not the
                same as "not applied" and must not lead to a comment being posted.
        """
        try:
            record = db.session.get(ActionRecord, key)
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Action ledger lookup failed", key=key, error=str(exc))
            raise LedgerLookupError(f"ledger lookup failed for {key!r}: {exc}") from exc
        return record is not None and record.result == ActionRecord.RESULT_OK

    def record_applied(self, key: str) -> bool:
        """
        Write the OK record for key. Returns False (after logging) on failure.

        The external effect has already happened when this runs, so a failed
        write is not raised: a later redelivery of the same action could post
        the comment again. That window is accepted.
        """
        try:
            record = db.session.get(ActionRecord, key)
            if record is None:
                db.session.add(ActionRecord(key=key, result=ActionRecord.RESULT_OK, created_at=datetime.utcnow()))
            else:
                record.result = ActionRecord.RESULT_OK
            db.session.commit()
            return True
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Action ledger write failed after comment was posted", key=key, error=str(exc))
            return False
