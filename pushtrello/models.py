from flask_sqlalchemy import SQLAlchemy
from datetime import datetime
from enum import Enum

db = SQLAlchemy()


class JobStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class RawPayload(db.Model):
    """Raw webhook body exactly as received. Written once, never updated."""
    __tablename__ = "raw_payloads"

    id = db.Column(db.Integer, primary_key=True)
    payload = db.Column(db.LargeBinary, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    @property
    def handle(self):
        return str(self.id)

    def __repr__(self):
        return f"<RawPayload {self.id} - {len(self.payload or b'')} bytes>"


class ActionRecord(db.Model):
    """Marks a (card reference + commit url) action as applied."""
    __tablename__ = "action_records"

    RESULT_OK = "OK"

    key = db.Column(db.String(2048), primary_key=True)
    result = db.Column(db.String(16), nullable=False, default=RESULT_OK)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f"<ActionRecord {self.key[:50]} - {self.result}>"


class DeferredJob(db.Model):
    """Durable unit of deferred work with retry bookkeeping."""
    __tablename__ = "deferred_jobs"
    __table_args__ = (
        db.Index("idx_deferred_jobs_due", "status", "next_retry_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.String(64), nullable=False, index=True)
    payload = db.Column(db.JSON, nullable=False)
    status = db.Column(db.Enum(JobStatus), nullable=False, default=JobStatus.PENDING)

    retry_count = db.Column(db.Integer, nullable=False, default=0)
    max_retries = db.Column(db.Integer, nullable=False, default=5)
    next_retry_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    claimed_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    completed_at = db.Column(db.DateTime, nullable=True)
    error_message = db.Column(db.Text, nullable=True)

    def __repr__(self):
        return f"<DeferredJob {self.id} - {self.kind} - {self.status}>"

    def to_dict(self):
        return {
            'id': self.id,
            'kind': self.kind,
            'payload': self.payload,
            'status': self.status.value,
            'retry_count': self.retry_count,
            'max_retries': self.max_retries,
            'next_retry_at': self.next_retry_at.isoformat() if self.next_retry_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'error_message': self.error_message,
        }


class SystemLog(db.Model):
    """Operational log entries surfaced through the administrative digest."""
    __tablename__ = "system_logs"

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    level = db.Column(db.String(10), nullable=False, index=True)  # WARNING, ERROR, CRITICAL
    category = db.Column(db.String(50), nullable=False)  # 'intake', 'jobs', 'relocation'
    operation = db.Column(db.String(100), nullable=False)
    message = db.Column(db.Text, nullable=False)
    context = db.Column(db.JSON, nullable=True)

    def __repr__(self):
        return f"<SystemLog {self.level} - {self.category}/{self.operation} - {self.message[:50]}...>"

    def as_line(self):
        return f"{self.timestamp.isoformat()} {self.level} {self.category}/{self.operation}: {self.message}"
