"""
Billplz X-Signature helpers.

Billplz signs callbacks and redirects with HMAC-SHA256 over a source string built
from every key/value pair except the signature itself: each pair is concatenated
as ``key + value``, the pieces are sorted and joined with ``|``.
"""

import hashlib
import hmac
from typing import Mapping, Optional

SIGNATURE_KEYS = ("x_signature", "billplzx_signature")


def build_source_string(payload: Mapping[str, object]) -> str:
    parts = []
    for key, value in payload.items():
        if key in SIGNATURE_KEYS:
            continue
        parts.append(f"{key}{'' if value is None else value}")
    return "|".join(sorted(parts))


def compute_x_signature(payload: Mapping[str, object], signature_key: str) -> str:
    source = build_source_string(payload)
    return hmac.new(
        signature_key.encode("utf-8"), source.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def extract_x_signature(payload: Mapping[str, object]) -> Optional[str]:
    for key in SIGNATURE_KEYS:
        if payload.get(key):
            return str(payload[key])
    return None


def verify_x_signature(payload: Mapping[str, object], signature_key: str) -> bool:
    """Return True if the payload carries a signature matching `signature_key`."""
    provided = extract_x_signature(payload)
    if not provided:
        return False
    expected = compute_x_signature(payload, signature_key)
    return hmac.compare_digest(expected, provided)
