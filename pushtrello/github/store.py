from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from pushtrello.errors import PayloadNotFound, PayloadStoreError
from pushtrello.logging_config import get_logger
from pushtrello.models import RawPayload, db

logger = get_logger(__name__)


class PayloadStore:
    """Durable storage for raw webhook bodies.

    Payloads are kept indefinitely; the handle returned by ``save`` is the
    replay key operators use when a batch has to be re-run.
    """

    def save(self, body: bytes) -> str:
        """Persist body and return its handle."""
        record = RawPayload(payload=body, created_at=datetime.utcnow())
        try:
            db.session.add(record)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Trouble saving the raw payload", error=str(exc), size=len(body))
            raise PayloadStoreError(f"could not store payload: {exc}") from exc
        logger.info("Raw payload stored", payload_id=record.handle, size=len(body))
        return record.handle

    def load(self, payload_id) -> RawPayload:
        """Return the stored payload for a handle.

        Raises:
            PayloadNotFound: the handle is empty, malformed or unknown
            PayloadStoreError: the database could not be read
        """
        try:
            key = int(str(payload_id).strip())
        except (TypeError, ValueError):
            raise PayloadNotFound(payload_id)
        try:
            record = db.session.get(RawPayload, key)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PayloadStoreError(f"could not load payload {payload_id}: {exc}") from exc
        if record is None:
            raise PayloadNotFound(payload_id)
        return record

    def exists(self, payload_id) -> bool:
        try:
            self.load(payload_id)
        except PayloadNotFound:
            return False
        return True
