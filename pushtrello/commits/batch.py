"""
Processing of one stored push payload.

All commits are validated before anything is derived, so a batch either
passes as a whole or nothing from it is dispatched. Commits are then
interpreted in order and each resulting action becomes its own job. A commit
that fails to interpret stops the batch; actions already dispatched for
earlier commits stand, and the batch is replayed by hand from the stored
payload handle (replays are safe because actions are dedup-guarded).
"""

from typing import List

from pushtrello.commits.interpreter import MessageInterpreter
from pushtrello.errors import CommitFieldsMissing, PushTrelloError
from pushtrello.github.payload import Commit, PushPayload, decode_push_payload
from pushtrello.github.store import PayloadStore
from pushtrello.logging_config import get_logger

logger = get_logger(__name__)

PROCESS_PAYLOAD = "process_payload"
ACTION_CARD = "action_card"


def is_blank(value) -> bool:
    return not value or not value.strip()


def missing_fields(commit: Commit) -> List[str]:
    missing = []
    if is_blank(commit.url):
        missing.append("url")
    if is_blank(commit.author.name):
        missing.append("author.name")
    if is_blank(commit.message):
        missing.append("message")
    return missing


def validate_commits(payload: PushPayload) -> None:
    """
    Raises:
        CommitFieldsMissing: for the first commit lacking url, author name or message
    """
    for commit in payload.commits:
        missing = missing_fields(commit)
        if missing:
            raise CommitFieldsMissing(commit.id, missing)


class BatchProcessor:

    def __init__(self, store: PayloadStore, interpreter: MessageInterpreter, dispatcher):
        self.store = store
        self.interpreter = interpreter
        self.dispatcher = dispatcher

    def run_job(self, payload) -> int:
        """Dispatcher entry point for ``process_payload`` jobs."""
        return self.process(payload.get("payload_id"))

    def process(self, payload_id) -> int:
        """
        Validate and process a stored payload.

        Returns:
            int: number of action jobs dispatched

        Raises:
            PayloadNotFound, BatchMalformed, CommitFieldsMissing, ParseError
        """
        log = logger.bind(payload_id=payload_id)
        try:
            raw = self.store.load(payload_id)
            push = decode_push_payload(raw.payload)
            validate_commits(push)
        except PushTrelloError as exc:
            log.error(
                "Payload rejected, nothing was applied; re-run it once fixed",
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise

        dispatched = 0
        for commit in push.commits:
            try:
                actions = self.interpreter.interpret(commit)
            except PushTrelloError as exc:
                log.error(
                    "Failed on commit; earlier commits were dispatched, re-run the payload to finish",
                    commit_id=commit.id,
                    commit_url=commit.url,
                    error_type=type(exc).__name__,
                    error=str(exc),
                    dispatched=dispatched,
                )
                raise
            for action in actions:
                self.dispatcher.enqueue(ACTION_CARD, action.to_payload())
                dispatched += 1

        log.info("Payload processed", commits=len(push.commits), actions=dispatched, ref=push.ref)
        return dispatched

    def replay(self, payload_id) -> int:
        """
        Queue a stored payload for processing again.

        Raises:
            PayloadNotFound: no payload with that handle
        """
        raw = self.store.load(payload_id)
        job_id = self.dispatcher.enqueue(PROCESS_PAYLOAD, {"payload_id": raw.handle})
        logger.info("Payload queued for replay", payload_id=raw.handle, job_id=job_id)
        return job_id
