"""
⚡ fastapi-lsat — LSAT Lightning paywalls for FastAPI.

Requests either present a paid LSAT (a signed macaroon plus the preimage of
its Lightning invoice) or, when the client announces LSAT support, receive a
402 challenge carrying a fresh macaroon and invoice.

Usage:
    from fastapi import Depends
    from fastapi_lsat import create_lsat

    lsat = create_lsat(backend=my_backend, secret="<64 hex chars>")
    lsat.install(app)

    @app.get("/api/data")
    async def data(info=Depends(lsat(sats=5))):
        return {"data": "...", "paid": info.paid}
"""

from .backends import InvoiceResult, LndRestBackend, LnurlPayBackend, PaymentBackend, backend_from_env
from .classifier import ClassificationKind, ClassificationResult, RequestClassifier
from .errors import (
    BackendError,
    ConfigurationError,
    InvalidPrice,
    InvalidSignature,
    LsatError,
    MalformedIdentifier,
    MalformedToken,
    PaymentBackendError,
    PaymentNotProven,
    SigningError,
)
from .gate import Lsat, create_lsat
from .identifier import TokenIdentifier, decode_identifier, encode_identifier, new_identifier
from .invoice import decode_payment_hash
from .issuer import Challenge, TokenIssuer
from .macaroon import Macaroon, create_macaroon, decode_macaroon, serialize_macaroon, verify_macaroon
from .middleware import LsatInfo, LsatMiddleware
from .protocol import LsatCredentials, format_challenge, format_challenge_body, parse_authorization
from .secret import RootSecretStore
from .verifier import TokenVerifier, VerifyResult, verify_preimage

__version__ = "0.1.0"

__all__ = [
    # Main API
    "create_lsat",
    "Lsat",
    "LsatMiddleware",
    "LsatInfo",
    # Core
    "RequestClassifier",
    "ClassificationKind",
    "ClassificationResult",
    "TokenIssuer",
    "Challenge",
    "TokenVerifier",
    "VerifyResult",
    "verify_preimage",
    "RootSecretStore",
    # Identifier
    "TokenIdentifier",
    "encode_identifier",
    "decode_identifier",
    "new_identifier",
    # Macaroon
    "Macaroon",
    "create_macaroon",
    "decode_macaroon",
    "serialize_macaroon",
    "verify_macaroon",
    # LSAT headers
    "LsatCredentials",
    "format_challenge",
    "format_challenge_body",
    "parse_authorization",
    # Backends
    "PaymentBackend",
    "InvoiceResult",
    "LndRestBackend",
    "LnurlPayBackend",
    "backend_from_env",
    "decode_payment_hash",
    # Errors
    "LsatError",
    "ConfigurationError",
    "InvalidPrice",
    "PaymentBackendError",
    "SigningError",
    "MalformedToken",
    "MalformedIdentifier",
    "InvalidSignature",
    "PaymentNotProven",
    "BackendError",
]
