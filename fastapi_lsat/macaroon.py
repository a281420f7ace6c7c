"""
Minimal macaroon envelope using HMAC-SHA256.

A macaroon here is a bearer credential: { location, identifier, signature }.
The identifier is the encoded TokenIdentifier (binary). The signature is a
chained HMAC under the root key: the location is folded in first, then the
identifier, so altering either invalidates the token.

Wire format: base64url (unpadded) of compact JSON with hex-encoded binary
fields.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from base64 import urlsafe_b64decode, urlsafe_b64encode
from dataclasses import dataclass
from typing import Optional

MACAROON_VERSION = 0


@dataclass(frozen=True)
class Macaroon:
    """Decoded macaroon structure."""
    location: str                  # e.g. "LSAT"
    identifier: bytes              # encoded TokenIdentifier
    signature: bytes               # HMAC chain result (32 bytes)


def _sign(secret: bytes, location: str, identifier: bytes) -> bytes:
    sig = hmac.new(secret, location.encode("utf-8"), hashlib.sha256).digest()
    return hmac.new(sig, identifier, hashlib.sha256).digest()


def create_macaroon(secret: bytes, identifier: bytes, location: str) -> Macaroon:
    """
    Create a signed macaroon.

    Args:
        secret: Root key.
        identifier: Encoded identifier bytes.
        location: Location label (not secret, but covered by the signature).

    Returns:
        Macaroon.
    """
    if not secret:
        raise ValueError("Macaroon secret is required")
    if not identifier:
        raise ValueError("identifier is required for macaroon")

    return Macaroon(
        location=location,
        identifier=bytes(identifier),
        signature=_sign(secret, location, identifier),
    )


def serialize_macaroon(macaroon: Macaroon) -> str:
    """Encode a macaroon to its base64url wire format."""
    payload = {
        "v": MACAROON_VERSION,
        "location": macaroon.location,
        "identifier": macaroon.identifier.hex(),
        "signature": macaroon.signature.hex(),
    }
    raw = urlsafe_b64encode(json.dumps(payload, separators=(",", ":")).encode("utf-8")).decode("ascii")
    return raw.rstrip("=")


def decode_macaroon(raw: str) -> Optional[Macaroon]:
    """
    Decode a raw macaroon string back to its components.

    Args:
        raw: Base64url-encoded macaroon string.

    Returns:
        Macaroon, or None if decoding fails or raw is not the canonical
        encoding of the decoded fields.
    """
    if not raw or not isinstance(raw, str):
        return None
    try:
        padded = raw + "=" * (-len(raw) % 4)
        parsed = json.loads(urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
    except (ValueError, UnicodeError):
        # binascii.Error and JSONDecodeError are both ValueError subclasses
        return None

    if not isinstance(parsed, dict) or parsed.get("v") != MACAROON_VERSION:
        return None

    location = parsed.get("location")
    identifier = parsed.get("identifier")
    signature = parsed.get("signature")
    if not isinstance(location, str) or not isinstance(identifier, str) or not isinstance(signature, str):
        return None

    try:
        identifier_bytes = bytes.fromhex(identifier)
        signature_bytes = bytes.fromhex(signature)
    except ValueError:
        return None

    if not identifier_bytes or len(signature_bytes) != hashlib.sha256().digest_size:
        return None

    macaroon = Macaroon(location=location, identifier=identifier_bytes, signature=signature_bytes)
    # Reject non-canonical spellings of the same fields
    if serialize_macaroon(macaroon) != raw:
        return None
    return macaroon


def verify_macaroon(secret: bytes, macaroon: Macaroon) -> bool:
    """
    Check a macaroon's signature against the root key.

    Args:
        secret: Root key.
        macaroon: Decoded macaroon.

    Returns:
        True if the signature matches.
    """
    expected = _sign(secret, macaroon.location, macaroon.identifier)
    # Constant-time comparison
    return hmac.compare_digest(expected, macaroon.signature)
