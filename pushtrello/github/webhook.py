from flask import Blueprint, current_app, request
from werkzeug.exceptions import ClientDisconnected

from pushtrello.commits.batch import PROCESS_PAYLOAD
from pushtrello.container import get_services
from pushtrello.errors import (
    PayloadStoreError,
    ReadError,
    SignatureMismatch,
    SignatureMissing,
)
from pushtrello.github.signature import SIGNATURE_HEADER, verify_signature
from pushtrello.logging_config import get_logger
from pushtrello.services.system_log_service import SystemLogService

logger = get_logger(__name__)

OK_BODY = "<html><body>OK</body></html>"
EVENT_HEADER = "X-GitHub-Event"

# Blueprint for the GitHub webhook
github_bp = Blueprint("github", __name__)


def _ok():
    return OK_BODY, 200, {"Content-Type": "text/html; charset=utf-8"}


def _reject(status, message, error, operation):
    SystemLogService.log_error(
        "intake",
        operation,
        error,
        context={"status": status, "remote_addr": request.remote_addr},
    )
    return message, status, {"Content-Type": "text/plain; charset=utf-8"}


@github_bp.route("/", methods=["GET", "HEAD", "OPTIONS", "POST"])
def github_webhook():
    if request.method in ("GET", "HEAD", "OPTIONS"):
        return _ok()

    services = get_services(current_app)
    settings = services.settings

    try:
        body = request.get_data(cache=False)
    except (ClientDisconnected, OSError) as e:
        return _reject(500, "Trouble reading request body", ReadError(str(e)), "read_body")

    try:
        verify_signature(
            body,
            request.headers.get(SIGNATURE_HEADER),
            settings.webhook_secret,
            skip_mismatch=settings.skip_signature_mismatch,
        )
    except SignatureMissing as e:
        return _reject(400, "Signature missing or unexpected", e, "parse_signature")
    except SignatureMismatch as e:
        return _reject(401, "Signature failed", e, "verify_signature")

    event = request.headers.get(EVENT_HEADER)
    if event and event != "push":
        logger.info("Ignoring non-push event", github_event=event)
        return _ok()

    try:
        payload_id = services.store.save(body)
    except PayloadStoreError as e:
        return _reject(500, "Trouble saving the payload", e, "store_payload")

    try:
        job_id = services.dispatcher.enqueue(PROCESS_PAYLOAD, {"payload_id": payload_id})
    except Exception as e:
        logger.error("Trouble queueing payload", payload_id=payload_id, exc_info=True)
        return _reject(500, "Trouble queueing the payload", e, "enqueue_payload")

    logger.info("Push webhook accepted", payload_id=payload_id, job_id=job_id, size=len(body))
    return _ok()
