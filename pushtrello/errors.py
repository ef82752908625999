"""
Exception hierarchy for intake, batch processing and action execution.

Every exception carries a ``retryable`` flag. The dispatcher reads it to
decide between scheduling another attempt and moving the job to the
failed state for manual replay.
"""


class PushTrelloError(Exception):
    """Base class for all application errors."""
    retryable = True


# Intake

class TransportError(PushTrelloError):
    retryable = False


class ReadError(TransportError):
    """The request body could not be read."""


class AuthError(PushTrelloError):
    retryable = False


class SignatureMissing(AuthError):
    """The signature header is empty or malformed."""


class SignatureMismatch(AuthError):
    """The computed HMAC does not match the one supplied."""


# Batch / interpretation

class ValidationError(PushTrelloError):
    retryable = False


class PayloadNotFound(ValidationError):
    def __init__(self, payload_id):
        super().__init__(f"No stored payload with handle {payload_id!r}")
        self.payload_id = payload_id


class BatchMalformed(ValidationError):
    """The stored payload is not a decodable push event."""


class CommitFieldsMissing(ValidationError):
    def __init__(self, commit_id, missing):
        self.commit_id = commit_id
        self.missing = list(missing)
        super().__init__(
            f"Commit {commit_id or '<unknown>'} is missing required fields: {', '.join(self.missing)}"
        )


class ParseError(ValidationError):
    """Commit message markup could not be parsed."""

    def __init__(self, message, position=None):
        super().__init__(message if position is None else f"{message} at offset {position}")
        self.position = position


class JobPayloadInvalid(ValidationError):
    """A deferred job carries a payload its handler cannot use."""


class UnknownJobKind(ValidationError):
    """No handler is registered for a deferred job's kind."""


# Storage

class StorageError(PushTrelloError):
    retryable = True


class PayloadStoreError(StorageError):
    """A raw payload could not be written or read."""


class LedgerLookupError(StorageError):
    """The action ledger could not answer whether an action was applied."""


# External API

class ExternalAPIError(PushTrelloError):
    retryable = True


class CommentPostFailed(ExternalAPIError):
    def __init__(self, card_id, cause):
        super().__init__(f"Posting comment to card {card_id} failed: {cause}")
        self.card_id = card_id
        self.cause = cause

    @property
    def retryable(self):
        # Transport errors carry no status; 5xx and 429 are transient
        status = getattr(self.cause, "status_code", None)
        return status is None or status >= 500 or status == 429


class RelocationError(PushTrelloError):
    """A step of the best-effort card move failed. Never fatal."""
    retryable = False
