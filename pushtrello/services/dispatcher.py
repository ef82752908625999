"""
Durable at-least-once job dispatch.

Jobs are rows in ``deferred_jobs`` holding a kind and a plain JSON payload.
Any process sharing the database can drain them. A job is claimed with a
conditional update before it runs; a claim older than the lease is released
again by ``recover_stale``, so a job may run more than once and every
handler must be idempotent or dedup-guarded.

Failure policy: exceptions whose ``retryable`` attribute is false move the
job straight to FAILED. Anything else is retried with exponential backoff
(2, 4, 8, ... seconds) until ``max_retries``, then moves to FAILED. Failed
jobs are written to the system log and can be retried by an operator.
"""

import json
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError

from pushtrello.errors import JobPayloadInvalid, UnknownJobKind
from pushtrello.logging_config import get_logger, job_context
from pushtrello.models import DeferredJob, JobStatus, db
from pushtrello.services.system_log_service import SystemLogService

logger = get_logger(__name__)

JobHandler = Callable[[Dict[str, Any]], Any]


class JobNotFound(LookupError):
    pass


class JobNotRetryable(ValueError):
    pass


class Dispatcher:

    def __init__(self, max_retries: int = 5, lease_seconds: int = 300, eager: bool = False,
                 system_log=SystemLogService):
        self.max_retries = max_retries
        self.lease_seconds = lease_seconds
        self.eager = eager
        self.system_log = system_log
        self.handlers: Dict[str, JobHandler] = {}

    def register(self, kind: str, handler: JobHandler) -> None:
        self.handlers[kind] = handler

    def enqueue(self, kind: str, payload: Dict[str, Any]) -> int:
        """
        Store a job and return its id. In eager mode the job also runs inline.

        Raises:
            JobPayloadInvalid: payload is not a JSON object of plain values
            SQLAlchemyError: the job could not be stored
        """
        if not isinstance(payload, dict):
            raise JobPayloadInvalid(f"job payload for {kind!r} must be a dict")
        try:
            plain = json.loads(json.dumps(payload, allow_nan=False))
        except (TypeError, ValueError) as exc:
            raise JobPayloadInvalid(f"job payload for {kind!r} is not JSON-serialisable: {exc}") from exc

        now = datetime.utcnow()
        job = DeferredJob(
            kind=kind,
            payload=plain,
            status=JobStatus.PENDING,
            retry_count=0,
            max_retries=self.max_retries,
            next_retry_at=now,
            created_at=now,
        )
        try:
            db.session.add(job)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.error("Trouble storing deferred job", kind=kind, exc_info=True)
            raise

        logger.info("Job enqueued", kind=kind, job_id=job.id)
        if self.eager:
            self.process_item(job)
        return job.id

    def _claim(self, job_id: int) -> bool:
        result = db.session.execute(
            update(DeferredJob)
            .where(DeferredJob.id == job_id, DeferredJob.status == JobStatus.PENDING)
            .values(status=JobStatus.PROCESSING, claimed_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        return result.rowcount == 1

    def process_item(self, job: DeferredJob) -> bool:
        """
        Claim and run one job.

        Returns:
            bool: True if the handler succeeded, False if it failed or the job
            was claimed elsewhere
        """
        job_id = job.id
        if not self._claim(job_id):
            logger.info("Job already claimed, skipping", job_id=job_id)
            return False
        job = db.session.get(DeferredJob, job_id, populate_existing=True)
        kind = job.kind
        payload = dict(job.payload or {})

        try:
            with job_context(kind, job_id, attempt=job.retry_count + 1):
                handler = self.handlers.get(kind)
                if handler is None:
                    raise UnknownJobKind(f"no handler registered for job kind {kind!r}")
                handler(payload)
        except Exception as exc:
            db.session.rollback()
            self._record_failure(job_id, exc)
            return False

        job = db.session.get(DeferredJob, job_id, populate_existing=True)
        job.status = JobStatus.COMPLETED
        job.completed_at = datetime.utcnow()
        job.claimed_at = None
        job.error_message = None
        db.session.commit()
        return True

    def _record_failure(self, job_id: int, exc: Exception) -> None:
        job = db.session.get(DeferredJob, job_id, populate_existing=True)
        retryable = getattr(exc, "retryable", True)
        job.retry_count += 1
        job.error_message = f"{type(exc).__name__}: {exc}"
        job.claimed_at = None

        if retryable and job.retry_count < job.max_retries:
            delay_seconds = 2 ** job.retry_count
            job.next_retry_at = datetime.utcnow() + timedelta(seconds=delay_seconds)
            job.status = JobStatus.PENDING
            db.session.commit()
            logger.warning(
                "Job failed, will retry",
                job_id=job_id,
                kind=job.kind,
                retry_count=job.retry_count,
                max_retries=job.max_retries,
                next_retry_at=job.next_retry_at.isoformat(),
                error=str(exc),
            )
            return

        job.status = JobStatus.FAILED
        db.session.commit()
        self.system_log.log_error(
            "jobs",
            job.kind,
            exc,
            context={
                "job_id": job_id,
                "job_payload": job.payload,
                "retry_count": job.retry_count,
                "retryable": retryable,
            },
        )

    def recover_stale(self, now: Optional[datetime] = None) -> int:
        """Return jobs whose claim outlived the lease to PENDING."""
        now = now or datetime.utcnow()
        cutoff = now - timedelta(seconds=self.lease_seconds)
        result = db.session.execute(
            update(DeferredJob)
            .where(DeferredJob.status == JobStatus.PROCESSING, DeferredJob.claimed_at < cutoff)
            .values(status=JobStatus.PENDING, claimed_at=None, next_retry_at=now)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        if result.rowcount:
            logger.warning("Released stale job claims", count=result.rowcount)
        return result.rowcount

    def process_pending(self, limit: int = 10) -> int:
        """
        Run pending jobs that are due.

        Returns:
            int: number of jobs that completed successfully
        """
        self.recover_stale()
        now = datetime.utcnow()
        pending = (
            DeferredJob.query
            .filter(DeferredJob.status == JobStatus.PENDING, DeferredJob.next_retry_at <= now)
            .order_by(DeferredJob.next_retry_at.asc(), DeferredJob.id.asc())
            .limit(limit)
            .all()
        )
        if not pending:
            return 0

        logger.info("Processing pending jobs", count=len(pending))
        processed = 0
        for job in pending:
            try:
                if self.process_item(job):
                    processed += 1
            except SQLAlchemyError as e:
                db.session.rollback()
                logger.error("Error processing deferred job", job_id=job.id, error=str(e), exc_info=True)

        logger.info("Processed pending jobs", succeeded=processed, total=len(pending))
        return processed

    def retry(self, job_id: int) -> DeferredJob:
        """
        Return a FAILED job to PENDING with a fresh retry budget.

        Raises:
            JobNotFound: no job with that id
            JobNotRetryable: the job is not in the FAILED state
        """
        job = db.session.get(DeferredJob, job_id)
        if job is None:
            raise JobNotFound(f"no deferred job {job_id}")
        if job.status != JobStatus.FAILED:
            raise JobNotRetryable(f"job {job_id} is {job.status.value}, not failed")
        job.status = JobStatus.PENDING
        job.retry_count = 0
        job.next_retry_at = datetime.utcnow()
        job.claimed_at = None
        db.session.commit()
        logger.info("Failed job requeued", job_id=job_id, kind=job.kind)
        if self.eager:
            self.process_item(job)
        return job

    def stats(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in JobStatus}
        rows = db.session.query(DeferredJob.status, func.count(DeferredJob.id)).group_by(DeferredJob.status).all()
        for status, count in rows:
            counts[status.value] = count
        return counts
