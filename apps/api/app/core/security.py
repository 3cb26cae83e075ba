"""Security utilities for shared secrets and provider digests."""

import hashlib
import hmac


def subscriber_hash(email: str) -> str:
    """Return the Mailchimp member id for an email address.

    Mailchimp identifies list members by the MD5 hex digest of the
    lower-cased address.
    """
    normalized = email.strip().lower()
    return hashlib.md5(normalized.encode("utf-8")).hexdigest()  # noqa: S324


def verify_shared_secret(provided: str | None, expected: str) -> bool:
    """Constant-time comparison of a caller-supplied secret.

    An empty expected secret never matches, so an unconfigured deployment
    rejects every caller.
    """
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())
