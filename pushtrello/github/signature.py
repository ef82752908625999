"""
GitHub webhook signature verification.

GitHub signs the raw body with HMAC-SHA1 using the shared webhook secret and
sends ``X-Hub-Signature: sha1=<hex digest>``. Comparison is constant-time.
"""

import binascii
import hashlib
import hmac

from pushtrello.errors import SignatureMismatch, SignatureMissing
from pushtrello.logging_config import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature"
SUPPORTED_ALGORITHM = "sha1"


def parse_signature(raw):
    """Parse a header value such as ``sha1=0566101a...`` into digest bytes.

    Raises:
        SignatureMissing: empty header, wrong shape, algorithm or non-hex digest
    """
    if raw is None or not raw.strip():
        raise SignatureMissing("empty signature")
    parts = raw.split("=")
    if len(parts) != 2:
        raise SignatureMissing(f"malformed signature {raw!r}")
    algorithm, digest = parts
    if algorithm != SUPPORTED_ALGORITHM:
        raise SignatureMissing(f"only sha1 supported, got {algorithm!r}")
    try:
        return binascii.unhexlify(digest)
    except (binascii.Error, ValueError) as exc:
        raise SignatureMissing(f"signature digest is not hex: {exc}") from exc


def compute_mac(body: bytes, secret: bytes) -> bytes:
    return hmac.new(secret, body, hashlib.sha1).digest()


def check_mac(body: bytes, message_mac: bytes, secret: bytes) -> bool:
    """Return True if message_mac is a valid HMAC-SHA1 tag for body."""
    return hmac.compare_digest(message_mac, compute_mac(body, secret))


def sign(body: bytes, secret) -> str:
    """Build the header value GitHub would send for body."""
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    return f"{SUPPORTED_ALGORITHM}={compute_mac(body, secret).hex()}"


def verify_signature(body: bytes, header_value, secret, skip_mismatch: bool = False) -> None:
    """Verify the webhook signature, raising on failure.

    Args:
        body: Raw request body bytes
        header_value: Value of the X-Hub-Signature header
        secret: Shared webhook secret (str or bytes). An unset secret never matches.
        skip_mismatch: Accept a well-formed but wrong signature. Set only by the
            explicit INSECURE_SKIP_SIGNATURE_MISMATCH flag outside production.

    Raises:
        SignatureMissing: header absent or malformed (never bypassed)
        SignatureMismatch: digest does not match
    """
    message_mac = parse_signature(header_value)

    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    if secret and check_mac(body, message_mac, secret):
        return

    if skip_mismatch:
        logger.warning("Signature mismatch ignored because INSECURE_SKIP_SIGNATURE_MISMATCH is set")
        return
    if not secret:
        logger.warning("GITHUB_WEBHOOK_SECRET not set, rejecting webhook")
    raise SignatureMismatch("Message HMAC verification failed")
