"""
FastAPI dependency for LSAT paywalls.

Runs the request classifier, records the outcome on request.state.lsat,
and turns a PAYMENT_REQUIRED outcome into a 402 with the WWW-Authenticate
challenge. Free, paid and invalid requests reach the route handler, which
decides what to serve; require_payment=True rejects the unpaid ones here.
"""

# Postponed annotations stay off here: FastAPI resolves a dependency's
# annotations through __globals__, which a callable instance does not have.
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from .classifier import ClassificationKind, ClassificationResult, RequestClassifier
from .identifier import TokenIdentifier
from .protocol import PAYMENT_REQUIRED_MESSAGE, format_challenge_body

LSAT_TYPE_FREE = "FREE"
LSAT_TYPE_PAID = "PAID"


@dataclass
class LsatInfo:
    """LSAT outcome attached to the request."""
    type: Optional[str]            # LSAT_TYPE_FREE, LSAT_TYPE_PAID, or None on error
    payment_hash: Optional[str] = None
    token_id: Optional[str] = None
    preimage: Optional[str] = None
    identifier: Optional[TokenIdentifier] = None
    error_code: Optional[str] = None
    error: Optional[str] = None

    @property
    def paid(self) -> bool:
        return self.type == LSAT_TYPE_PAID

    @classmethod
    def from_result(cls, result: ClassificationResult) -> "LsatInfo":
        ident = result.identifier
        token = {
            "payment_hash": ident.payment_hash_hex if ident else None,
            "token_id": ident.token_id_hex if ident else None,
            "identifier": ident,
        }
        if result.kind is ClassificationKind.PAID:
            return cls(type=LSAT_TYPE_PAID, preimage=result.preimage, **token)
        if result.kind is ClassificationKind.FREE:
            return cls(type=LSAT_TYPE_FREE)
        return cls(
            type=None,
            **token,
            error_code=result.error_code,
            error=result.error,
        )


class PaymentRequiredException(HTTPException):
    """402 carrying an LSAT challenge."""

    def __init__(self, detail: Dict[str, Any], headers: Optional[Dict[str, str]] = None):
        super().__init__(status_code=402, detail=detail, headers=headers)


async def payment_required_handler(request: Request, exc: PaymentRequiredException) -> JSONResponse:
    """Render a PaymentRequiredException with its detail as the whole body."""
    return JSONResponse(status_code=exc.status_code, content=exc.detail, headers=exc.headers)


class LsatMiddleware:
    """
    Core LSAT gate logic for a specific route configuration.

    Created by Lsat.__call__ and used with Depends().
    """

    def __init__(self, classifier: RequestClassifier, require_payment: bool = False):
        self.classifier = classifier
        self.require_payment = require_payment

    async def __call__(self, request: Request) -> LsatInfo:
        """
        Process a request through the LSAT gate.

        Args:
            request: FastAPI Request object.

        Returns:
            LsatInfo (also stored on request.state.lsat).

        Raises:
            PaymentRequiredException: 402 with a challenge.
            HTTPException: 401 for invalid credentials or 402 without a
                challenge, only when require_payment is set.
        """
        result = await self.classifier.classify(request)
        info = LsatInfo.from_result(result)
        request.state.lsat = info

        if result.kind is ClassificationKind.PAYMENT_REQUIRED:
            raise PaymentRequiredException(
                detail=format_challenge_body(),
                headers={"WWW-Authenticate": result.challenge.header},
            )

        if self.require_payment:
            if result.kind is ClassificationKind.INVALID:
                raise HTTPException(
                    status_code=401,
                    detail={"code": 401, "message": result.error, "errorCode": result.error_code},
                )
            if result.kind is ClassificationKind.FREE:
                raise HTTPException(
                    status_code=402,
                    detail={"code": 402, "message": PAYMENT_REQUIRED_MESSAGE},
                )

        return info
