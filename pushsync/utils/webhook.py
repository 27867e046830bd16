"""
Webhook signature utilities.

GitHub signs each delivery with the secret configured on the repository's
Webhook settings page and sends the result in the X-Hub-Signature header as
``sha1=<hex digest>`` of the raw request body.
"""

import hmac
import hashlib
from typing import Optional


SIGNATURE_PREFIX = "sha1="


def hmac_sha1_hex(secret: str, payload: bytes) -> str:
    """Return the hex HMAC-SHA1 digest of ``payload`` keyed with ``secret``."""
    mac = hmac.new(
        secret.encode("utf-8"),
        msg=payload,
        digestmod=hashlib.sha1,
    )
    return mac.hexdigest()


def compute_signature(secret: str, payload: bytes) -> str:
    """Return the X-Hub-Signature value GitHub would send for ``payload``."""
    return SIGNATURE_PREFIX + hmac_sha1_hex(secret, payload)


def validate_github_signature(
    payload_body: bytes,
    signature_header: Optional[str],
    secret: str,
) -> bool:
    """
    Validate a GitHub webhook signature using HMAC SHA-1.

    A missing header never authenticates.

    Args:
        payload_body: Raw webhook payload body, exactly as received
        signature_header: Value of the X-Hub-Signature header
        secret: Webhook secret configured in GitHub

    Returns:
        True if signature is valid, False otherwise

    Example:
        >>> body = b'{"ref": "refs/heads/main"}'
        >>> validate_github_signature(body, compute_signature("s3cret", body), "s3cret")
        True
    """
    if not signature_header:
        return False

    if not signature_header.startswith(SIGNATURE_PREFIX):
        return False

    expected = compute_signature(secret, payload_body)

    # compare_digest only accepts ASCII str, so compare as bytes
    return hmac.compare_digest(
        expected.encode("ascii"), signature_header.encode("utf-8")
    )
