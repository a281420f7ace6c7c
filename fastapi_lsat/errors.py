"""
Error taxonomy for LSAT issuance and verification.

Issuance failures (configuration, pricing, backend, signing) are raised.
Verification failures are routine outcomes: the verifier reports them as
codes on a VerifyResult and never raises them. The exception classes still
carry the canonical codes so both paths speak the same vocabulary.
"""

from __future__ import annotations


class LsatError(Exception):
    """Base class for all LSAT errors."""

    code = "LsatError"


class ConfigurationError(LsatError):
    """Root key or backend settings are missing or malformed."""

    code = "ConfigurationError"


class InvalidPrice(LsatError):
    """The pricing function returned something other than a non-negative int."""

    code = "InvalidPrice"


class PaymentBackendError(LsatError):
    """Invoice creation failed or timed out."""

    code = "PaymentBackendError"


class SigningError(LsatError):
    """The macaroon could not be signed."""

    code = "SigningError"


class MalformedToken(LsatError):
    code = "MalformedToken"


class MalformedIdentifier(LsatError):
    code = "MalformedIdentifier"


class InvalidSignature(LsatError):
    code = "InvalidSignature"


class PaymentNotProven(LsatError):
    code = "PaymentNotProven"


class BackendError(Exception):
    """Raised by payment backend implementations (transport or API failure)."""


MALFORMED_TOKEN = MalformedToken.code
MALFORMED_IDENTIFIER = MalformedIdentifier.code
INVALID_SIGNATURE = InvalidSignature.code
PAYMENT_NOT_PROVEN = PaymentNotProven.code
