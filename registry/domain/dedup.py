"""
Deduplication keys - One-way lookup keys derived from email addresses.

Contacts are unique on this key rather than on the plaintext email, so an
exposed lookup index does not directly list addresses.
"""

import hashlib


def derive_key(normalized_email: str, prefix: str) -> str:
    """
    Derive the dedup key for an email address.

    SHA-256 over a fixed, non-secret prefix plus the trimmed, lowercased
    email; returned as lowercase hex.
    """
    material = prefix + normalized_email.strip().lower()
    return hashlib.sha256(material.encode("utf-8")).hexdigest()
