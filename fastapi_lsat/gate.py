"""
LSAT gate factory.

create_lsat() wires the root key store, payment backend, issuer and verifier
into an Lsat instance whose calls produce FastAPI dependencies for routes.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from . import config
from .backends import PaymentBackend, backend_from_env
from .classifier import RequestClassifier
from .issuer import PriceFunc, TokenIssuer
from .middleware import LsatMiddleware, PaymentRequiredException, payment_required_handler
from .protocol import SCHEME
from .secret import RootSecretStore
from .verifier import TokenVerifier


class Lsat:
    """
    LSAT gate instance.

    Created by create_lsat(). Used as a FastAPI dependency factory.

    Usage:
        lsat = create_lsat(secret="<64 hex chars>")
        lsat.install(app)

        @app.get("/api/data")
        async def data(info=Depends(lsat(sats=5))):
            if not info.paid:
                return {"data": "preview"}
            return {"data": "..."}
    """

    def __init__(self, issuer: TokenIssuer, verifier: TokenVerifier, default_sats: int = 10):
        self.issuer = issuer
        self.verifier = verifier
        self.default_sats = default_sats

    def __call__(
        self,
        sats: Optional[int] = None,
        price: Optional[PriceFunc] = None,
        require_payment: bool = False,
    ) -> LsatMiddleware:
        """
        Create a FastAPI dependency for a route.

        Args:
            sats: Fixed price in satoshis.
            price: Dynamic pricing callable (request) -> sats. Wins over sats.
            require_payment: Reject unpaid and invalid requests in the dependency.

        Returns:
            LsatMiddleware instance usable with Depends().
        """
        classifier = RequestClassifier(
            self.issuer,
            self.verifier,
            price_func=self._price_func(sats, price),
        )
        return LsatMiddleware(classifier, require_payment=require_payment)

    def _price_func(self, sats: Optional[int], price: Optional[PriceFunc]) -> PriceFunc:
        if callable(price):
            return price
        amount = self.default_sats if sats is None else sats
        return lambda request: amount

    def install(self, app: Any) -> None:
        """Register the 402 handler so challenges render {code, message} bodies."""
        app.add_exception_handler(PaymentRequiredException, payment_required_handler)


def create_lsat(
    backend: Optional[PaymentBackend] = None,
    secret: Optional[Union[str, bytes]] = None,
    secret_store: Optional[RootSecretStore] = None,
    default_sats: int = 10,
    invoice_expiry: Optional[int] = None,
    timeout: Optional[float] = None,
    location: str = SCHEME,
    env_file: Optional[str] = None,
) -> Lsat:
    """
    Create an LSAT gate.

    Args:
        backend: Object with an async create_invoice(); defaults to
            backend_from_env() (LSAT_LN_CLIENT_TYPE selects LND or LNURL).
        secret: Root key (32 bytes or 64 hex chars); defaults to LSAT_ROOT_KEY.
        secret_store: Pre-built RootSecretStore (overrides secret).
        default_sats: Price when a route sets neither sats nor price.
        invoice_expiry: Invoice expiry in seconds (default LSAT_INVOICE_EXPIRY or 300).
        timeout: Seconds to wait for invoice creation (default LSAT_BACKEND_TIMEOUT or 30).
        location: Macaroon location label.
        env_file: Optional .env file loaded before reading the environment.

    Returns:
        Lsat instance.

    Raises:
        ConfigurationError: If the backend cannot be configured.
        ValueError: If backend lacks create_invoice().
    """
    if env_file:
        config.load_env(env_file)

    if backend is None:
        backend = backend_from_env()
    elif not callable(getattr(backend, "create_invoice", None)):
        raise ValueError("fastapi-lsat: backend must have a create_invoice() method")

    store = secret_store or RootSecretStore(secret=secret)

    issuer = TokenIssuer(
        store,
        backend,
        location=location,
        invoice_expiry=config.invoice_expiry() if invoice_expiry is None else invoice_expiry,
        timeout=config.backend_timeout() if timeout is None else timeout,
    )
    verifier = TokenVerifier(store, location=location)

    return Lsat(issuer, verifier, default_sats=default_sats)
