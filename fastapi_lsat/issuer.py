"""
LSAT challenge issuance.

For a request that needs payment: price it, have the payment backend create
an invoice, mint a macaroon whose identifier embeds the invoice's payment
hash, and hand both back as a Challenge. The payment hash lives inside the
signed identifier, so verification later needs no issued-token database.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .backends import PaymentBackend
from .errors import (
    InvalidPrice,
    LsatError,
    PaymentBackendError,
    SigningError,
)
from .identifier import PAYMENT_HASH_SIZE, TokenIdentifier, encode_identifier, new_identifier
from .macaroon import create_macaroon, serialize_macaroon
from .protocol import SCHEME, format_challenge
from .secret import RootSecretStore

logger = logging.getLogger(__name__)

PriceFunc = Callable[[Any], int]


@dataclass(frozen=True)
class Challenge:
    """A freshly issued LSAT challenge."""
    macaroon: str                  # serialized macaroon
    invoice: str                   # bolt11 invoice to pay
    payment_hash: str              # hex
    amount_sats: int
    identifier: TokenIdentifier

    @property
    def header(self) -> str:
        """WWW-Authenticate header value."""
        return format_challenge(self.macaroon, self.invoice)


def _check_price(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidPrice(f"Price must be an integer number of sats, got {type(amount).__name__}")
    if amount < 0:
        raise InvalidPrice(f"Price must be non-negative, got {amount}")
    return amount


def _payment_hash_bytes(payment_hash: Any) -> bytes:
    try:
        raw = bytes.fromhex(payment_hash)
    except (TypeError, ValueError) as exc:
        raise PaymentBackendError("Backend returned a non-hex payment hash") from exc
    if len(raw) != PAYMENT_HASH_SIZE:
        raise PaymentBackendError(f"Backend returned a {len(raw)}-byte payment hash")
    return raw


class TokenIssuer:
    """
    Mints LSAT challenges.

    Holds no state between calls besides its collaborators.
    """

    def __init__(
        self,
        secret_store: RootSecretStore,
        backend: PaymentBackend,
        location: str = SCHEME,
        memo: str = SCHEME,
        invoice_expiry: int = 300,
        timeout: Optional[float] = None,
    ):
        """
        Args:
            secret_store: Root key source.
            backend: Payment backend with an async create_invoice().
            location: Macaroon location label.
            memo: Invoice description.
            invoice_expiry: Invoice expiry in seconds.
            timeout: Seconds to wait for the backend; None waits indefinitely.
        """
        self.secret_store = secret_store
        self.backend = backend
        self.location = location
        self.memo = memo
        self.invoice_expiry = invoice_expiry
        self.timeout = timeout

    async def issue_challenge(self, request: Any, price_func: PriceFunc) -> Challenge:
        """
        Issue a challenge for a request.

        Args:
            request: Inbound request, passed to the pricing function.
            price_func: Pricing policy, (request) -> sats.

        Returns:
            Challenge.

        Raises:
            InvalidPrice: Pricing function failed or returned a bad amount.
            PaymentBackendError: Invoice creation failed or timed out.
            SigningError: The macaroon could not be signed.
        """
        try:
            amount = price_func(request)
        except LsatError:
            raise
        except Exception as exc:
            raise InvalidPrice(f"Pricing function failed: {exc}") from exc
        amount_sats = _check_price(amount)

        invoice_result = await self._create_invoice(amount_sats)
        if not invoice_result or not getattr(invoice_result, "invoice", None):
            raise PaymentBackendError("Backend returned no invoice")
        payment_hash = _payment_hash_bytes(getattr(invoice_result, "payment_hash", None))

        identifier = new_identifier(payment_hash)
        try:
            macaroon = create_macaroon(
                self.secret_store.load(),
                encode_identifier(identifier),
                self.location,
            )
        except Exception as exc:
            raise SigningError(f"Could not sign macaroon: {exc.__class__.__name__}") from exc

        logger.debug(f"Issued LSAT challenge for {amount_sats} sats, payment_hash={payment_hash.hex()}")

        return Challenge(
            macaroon=serialize_macaroon(macaroon),
            invoice=invoice_result.invoice,
            payment_hash=payment_hash.hex(),
            amount_sats=amount_sats,
            identifier=identifier,
        )

    async def _create_invoice(self, amount_sats: int) -> Any:
        try:
            call = self.backend.create_invoice(
                amount_sats=amount_sats,
                description=self.memo,
                expiry=self.invoice_expiry,
            )
            if self.timeout is None:
                return await call
            return await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.warning(f"Invoice creation timed out after {self.timeout}s")
            raise PaymentBackendError(f"Invoice creation timed out after {self.timeout}s") from exc
        except Exception as exc:
            logger.warning(f"Invoice creation failed: {exc}")
            raise PaymentBackendError(f"Invoice creation failed: {exc}") from exc
