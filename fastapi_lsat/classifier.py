"""
Per-request LSAT classification.

Decides, for one inbound request, whether it is free, needs a payment
challenge, is paid, or carries an invalid credential:

    LSAT Authorization present  -> verify  -> PAID | INVALID
    Accept announces LSAT       -> issue   -> PAYMENT_REQUIRED | INVALID
    otherwise                   -> FREE

A request that attempts LSAT authentication and fails is INVALID, never
FREE. Classification is a pure decision; turning it into a response is the
caller's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .errors import MALFORMED_TOKEN, LsatError
from .identifier import TokenIdentifier
from .issuer import Challenge, PriceFunc, TokenIssuer
from .protocol import accepts_lsat, has_lsat_scheme, parse_authorization
from .verifier import TokenVerifier

logger = logging.getLogger(__name__)


class ClassificationKind(str, Enum):
    FREE = "FREE"
    PAYMENT_REQUIRED = "PAYMENT_REQUIRED"
    PAID = "PAID"
    INVALID = "INVALID"


@dataclass
class ClassificationResult:
    """Outcome of classifying a single request."""
    kind: ClassificationKind
    challenge: Optional[Challenge] = None
    identifier: Optional[TokenIdentifier] = None
    preimage: Optional[str] = None  # hex, PAID only
    error_code: Optional[str] = None
    error: Optional[str] = None

    @property
    def paid(self) -> bool:
        return self.kind is ClassificationKind.PAID

    @property
    def free(self) -> bool:
        return self.kind is ClassificationKind.FREE

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind.value}
        if self.identifier is not None:
            data["paymentHash"] = self.identifier.payment_hash_hex
            data["tokenId"] = self.identifier.token_id_hex
        if self.challenge is not None:
            data["invoice"] = self.challenge.invoice
            data["macaroon"] = self.challenge.macaroon
            data["amountSats"] = self.challenge.amount_sats
        if self.error_code is not None:
            data["errorCode"] = self.error_code
            data["error"] = self.error
        return data


def _invalid(code: str, message: str, identifier: Optional[TokenIdentifier] = None) -> ClassificationResult:
    return ClassificationResult(
        kind=ClassificationKind.INVALID,
        identifier=identifier,
        error_code=code,
        error=message,
    )


def _header(request: Any, name: str) -> Optional[str]:
    headers = getattr(request, "headers", None)
    if headers is None:
        return None
    return headers.get(name)


class RequestClassifier:
    """
    Classifies requests using an issuer and a verifier.

    Usage:
        classifier = RequestClassifier(issuer, verifier, price_func=lambda req: 10)
        result = await classifier.classify(request)
    """

    def __init__(self, issuer: TokenIssuer, verifier: TokenVerifier, price_func: PriceFunc):
        self.issuer = issuer
        self.verifier = verifier
        self.price_func = price_func

    async def classify(self, request: Any) -> ClassificationResult:
        """
        Classify a request.

        Args:
            request: Object with a case-insensitive `headers` mapping
                (Starlette/FastAPI Request).

        Returns:
            ClassificationResult.
        """
        auth_header = _header(request, "authorization")
        if has_lsat_scheme(auth_header):
            return self._classify_credentials(auth_header)

        if accepts_lsat(_header(request, "accept")):
            return await self._challenge(request)

        return ClassificationResult(kind=ClassificationKind.FREE)

    def _classify_credentials(self, auth_header: str) -> ClassificationResult:
        credentials = parse_authorization(auth_header)
        if credentials is None:
            logger.debug("LSAT rejected: unparseable Authorization header")
            return _invalid(MALFORMED_TOKEN, "Malformed LSAT authorization header")

        result = self.verifier.verify(credentials.macaroon, credentials.preimage)
        if not result.valid:
            return _invalid(
                result.error_code or MALFORMED_TOKEN,
                result.error or "Invalid LSAT",
                result.identifier,
            )

        return ClassificationResult(
            kind=ClassificationKind.PAID,
            identifier=result.identifier,
            preimage=credentials.preimage.lower(),
        )

    async def _challenge(self, request: Any) -> ClassificationResult:
        try:
            challenge = await self.issuer.issue_challenge(request, self.price_func)
        except LsatError as exc:
            logger.warning(f"LSAT challenge failed: {exc.code}: {exc}")
            return _invalid(exc.code, str(exc))

        return ClassificationResult(
            kind=ClassificationKind.PAYMENT_REQUIRED,
            challenge=challenge,
            identifier=challenge.identifier,
        )
