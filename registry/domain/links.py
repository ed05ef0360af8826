"""
Outbound links - Verification and unsubscribe URLs embedded in email.

Unsubscribe tokens are URL-safe base64 of the recipient address. They are
opaque to the recipient, not secret: unsubscribing is harmless and
idempotent, so no signature is carried.
"""

import base64
import binascii
from urllib.parse import urlencode

from .policy import RegistryPolicy


def verification_link(policy: RegistryPolicy, token: str) -> str:
    return f"{policy.verify_url}?{urlencode({'token': token})}"


def unsubscribe_link(policy: RegistryPolicy, email: str) -> str:
    return f"{policy.unsubscribe_url}?{urlencode({'token': encode_unsubscribe_token(email)})}"


def encode_unsubscribe_token(email: str) -> str:
    return base64.urlsafe_b64encode(email.encode("utf-8")).decode("ascii").rstrip("=")


def decode_unsubscribe_token(token: str) -> str | None:
    """
    Decode an unsubscribe token back to an email address.

    Accepts URL-safe and standard alphabets, with or without padding.
    Returns None if the token is not valid base64 of UTF-8 text.
    """
    candidate = token.strip().replace("+", "-").replace("/", "_").replace(" ", "-")
    candidate = candidate.rstrip("=")
    if not candidate:
        return None
    candidate += "=" * (-len(candidate) % 4)
    try:
        raw = base64.b64decode(candidate.encode("ascii"), altchars=b"-_", validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        return None
