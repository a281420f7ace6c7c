"""
LSAT token verification.

A presented token is accepted when its macaroon was signed with our root key
and the client's preimage hashes to the payment hash inside the identifier.
Every failure is reported as a VerifyResult; nothing here raises for bad
client input.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Optional, Union

from .errors import (
    INVALID_SIGNATURE,
    MALFORMED_IDENTIFIER,
    MALFORMED_TOKEN,
    PAYMENT_NOT_PROVEN,
    MalformedIdentifier,
)
from .identifier import PAYMENT_HASH_SIZE, TokenIdentifier, decode_identifier
from .macaroon import decode_macaroon, verify_macaroon
from .protocol import SCHEME
from .secret import RootSecretStore

logger = logging.getLogger(__name__)


@dataclass
class VerifyResult:
    """Result of token verification."""
    valid: bool
    identifier: Optional[TokenIdentifier] = None
    error_code: Optional[str] = None
    error: Optional[str] = None


def _failure(code: str, message: str, identifier: Optional[TokenIdentifier] = None) -> VerifyResult:
    logger.debug(f"LSAT rejected: {code}")
    return VerifyResult(valid=False, identifier=identifier, error_code=code, error=message)


def verify_preimage(preimage: Union[str, bytes, None], payment_hash: bytes) -> bool:
    """
    Verify that a preimage matches a payment hash.
    payment_hash = SHA256(preimage)

    Args:
        preimage: 32-byte preimage, raw or hex-encoded.
        payment_hash: 32-byte payment hash.

    Returns:
        True if SHA256(preimage) == payment_hash.
    """
    if not preimage or not payment_hash:
        return False
    if isinstance(preimage, str):
        try:
            preimage = bytes.fromhex(preimage.strip())
        except ValueError:
            return False
    if len(preimage) != PAYMENT_HASH_SIZE:
        return False

    computed = hashlib.sha256(preimage).digest()
    return hmac.compare_digest(computed, payment_hash)


class TokenVerifier:
    """Checks presented LSATs against the root key."""

    def __init__(self, secret_store: RootSecretStore, location: str = SCHEME):
        self.secret_store = secret_store
        self.location = location

    def verify(self, macaroon_text: str, preimage: Union[str, bytes, None]) -> VerifyResult:
        """
        Verify a token and its payment proof.

        Args:
            macaroon_text: Serialized macaroon as presented by the client.
            preimage: Invoice preimage, raw or hex-encoded.

        Returns:
            VerifyResult; on success it carries the decoded identifier.

        Raises:
            ConfigurationError: If the root key cannot be loaded.
        """
        macaroon = decode_macaroon(macaroon_text)
        if macaroon is None:
            return _failure(MALFORMED_TOKEN, "Invalid macaroon encoding")

        if not verify_macaroon(self.secret_store.load(), macaroon):
            return _failure(INVALID_SIGNATURE, "Invalid macaroon signature")
        if macaroon.location != self.location:
            return _failure(MALFORMED_TOKEN, f"Unexpected macaroon location: {macaroon.location}")

        try:
            identifier = decode_identifier(macaroon.identifier)
        except MalformedIdentifier as exc:
            return _failure(MALFORMED_IDENTIFIER, str(exc))

        if not verify_preimage(preimage, identifier.payment_hash):
            return _failure(
                PAYMENT_NOT_PROVEN,
                "Invalid preimage: does not match payment hash",
                identifier,
            )

        return VerifyResult(valid=True, identifier=identifier)
