"""
LSAT token identifier and its binary encoding.

The identifier is what the macaroon signature covers, so the encoding is a
fixed byte layout rather than a self-describing format:

    uint16 version (big-endian) | 32-byte payment hash | 32-byte token id

The payment hash binds the token to one Lightning invoice. The token id is
fresh randomness that keeps two tokens for the same invoice distinct.
"""

from __future__ import annotations

import secrets
import struct
from dataclasses import dataclass

from .errors import MalformedIdentifier

IDENTIFIER_VERSION = 0
PAYMENT_HASH_SIZE = 32
TOKEN_ID_SIZE = 32

_VERSION_FORMAT = ">H"
_VERSION_SIZE = struct.calcsize(_VERSION_FORMAT)

# Body layout per known version (everything after the version prefix).
_LAYOUTS = {
    0: struct.Struct(f">{PAYMENT_HASH_SIZE}s{TOKEN_ID_SIZE}s"),
}


@dataclass(frozen=True)
class TokenIdentifier:
    """Decoded LSAT identifier."""
    version: int
    payment_hash: bytes            # sha256 of the invoice preimage
    token_id: bytes                # random, unique per issuance

    @property
    def payment_hash_hex(self) -> str:
        return self.payment_hash.hex()

    @property
    def token_id_hex(self) -> str:
        return self.token_id.hex()


def encode_identifier(identifier: TokenIdentifier) -> bytes:
    """
    Serialize an identifier to its fixed binary layout.

    Args:
        identifier: Identifier to encode.

    Returns:
        Encoded bytes (66 bytes for version 0).

    Raises:
        ValueError: If the version is unknown or a field has the wrong size.
    """
    layout = _LAYOUTS.get(identifier.version)
    if layout is None:
        raise ValueError(f"Unknown identifier version: {identifier.version}")
    if len(identifier.payment_hash) != PAYMENT_HASH_SIZE:
        raise ValueError(f"payment_hash must be {PAYMENT_HASH_SIZE} bytes")
    if len(identifier.token_id) != TOKEN_ID_SIZE:
        raise ValueError(f"token_id must be {TOKEN_ID_SIZE} bytes")

    return struct.pack(_VERSION_FORMAT, identifier.version) + layout.pack(
        identifier.payment_hash, identifier.token_id
    )


def decode_identifier(data: bytes) -> TokenIdentifier:
    """
    Parse identifier bytes produced by encode_identifier().

    Args:
        data: Raw identifier bytes.

    Returns:
        TokenIdentifier.

    Raises:
        MalformedIdentifier: If the version is unknown or the length does not
            match the layout for that version.
    """
    if len(data) < _VERSION_SIZE:
        raise MalformedIdentifier("Identifier too short")

    (version,) = struct.unpack_from(_VERSION_FORMAT, data)
    layout = _LAYOUTS.get(version)
    if layout is None:
        raise MalformedIdentifier(f"Unknown identifier version: {version}")

    body = data[_VERSION_SIZE:]
    if len(body) != layout.size:
        raise MalformedIdentifier(
            f"Identifier length mismatch: expected {_VERSION_SIZE + layout.size}, got {len(data)}"
        )

    payment_hash, token_id = layout.unpack(body)
    return TokenIdentifier(version=version, payment_hash=payment_hash, token_id=token_id)


def new_token_id() -> bytes:
    """Generate a random 32-byte token id."""
    return secrets.token_bytes(TOKEN_ID_SIZE)


def new_identifier(payment_hash: bytes) -> TokenIdentifier:
    """Build a current-version identifier for a payment hash with a fresh token id."""
    return TokenIdentifier(
        version=IDENTIFIER_VERSION,
        payment_hash=payment_hash,
        token_id=new_token_id(),
    )
