"""
Payment backends that create Lightning invoices for LSAT challenges.

The issuer only needs one thing from a backend: create an invoice for an
amount and return the bolt11 string plus its payment hash. Any object with
a matching async create_invoice() works. Two are provided:

- LndRestBackend talks to an LND node over its REST API.
- LnurlPayBackend requests invoices from an LNURL-pay endpoint (for example
  a lightning address), so no node credentials are needed.

backend_from_env() picks one based on LSAT_LN_CLIENT_TYPE.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Union

import httpx

from . import config
from .errors import BackendError, ConfigurationError
from .invoice import decode_lnurl, decode_payment_hash

logger = logging.getLogger(__name__)


@dataclass
class InvoiceResult:
    """Result from create_invoice."""
    invoice: str                   # bolt11 payment request
    payment_hash: str              # hex-encoded


class PaymentBackend(Protocol):
    async def create_invoice(
        self,
        amount_sats: int,
        description: str = "",
        expiry: int = 300,
    ) -> InvoiceResult:
        ...


async def _request_json(
    name: str,
    method: str,
    url: str,
    *,
    timeout: float,
    verify: Any,
    transport: Optional[httpx.AsyncBaseTransport],
    **kwargs: Any,
) -> Dict[str, Any]:
    """Send one request and return the JSON object body, or raise BackendError."""
    try:
        async with httpx.AsyncClient(timeout=timeout, verify=verify, transport=transport) as client:
            response = await client.request(method, url, **kwargs)
    except httpx.HTTPError as exc:
        logger.warning(f"{name} request failed: {exc.__class__.__name__}")
        raise BackendError(f"{name} request failed: {exc.__class__.__name__}") from exc

    if response.status_code >= 400:
        logger.warning(f"{name} request returned {response.status_code}")
        raise BackendError(f"{name} returned {response.status_code}: {response.text[:200]}")

    try:
        data = response.json()
    except ValueError as exc:
        raise BackendError(f"{name} returned non-json response") from exc

    if not isinstance(data, dict):
        raise BackendError(f"{name} returned unexpected response")
    return data


class LndRestBackend:
    """
    Invoice creation through LND's REST API (POST /v1/invoices).

    Usage:
        backend = LndRestBackend("https://localhost:8080", macaroon_hex="0201...")
        result = await backend.create_invoice(amount_sats=10, description="LSAT")
    """

    def __init__(
        self,
        base_url: str,
        macaroon_hex: str,
        timeout: float = 20.0,
        verify: Any = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: LND REST endpoint, e.g. https://localhost:8080.
            macaroon_hex: Hex-encoded macaroon with invoice permissions.
            timeout: Per-request timeout in seconds.
            verify: TLS verification (bool or path to LND's tls.cert).
            transport: Optional httpx transport (used by tests).
        """
        if not base_url:
            raise ConfigurationError("LND REST URL is required")
        if not macaroon_hex:
            raise ConfigurationError("LND macaroon is required")

        self.base_url = base_url.rstrip("/")
        self._headers = {"Grpc-Metadata-macaroon": macaroon_hex}
        self._timeout = timeout
        self._verify = verify
        self._transport = transport

    def __repr__(self) -> str:
        return f"LndRestBackend(base_url={self.base_url!r})"

    async def create_invoice(
        self,
        amount_sats: int,
        description: str = "",
        expiry: int = 300,
    ) -> InvoiceResult:
        """
        Create an invoice on the LND node.

        Args:
            amount_sats: Amount in satoshis.
            description: Invoice memo.
            expiry: Expiry time in seconds.

        Returns:
            InvoiceResult with invoice and hex payment_hash.

        Raises:
            BackendError: If LND is unreachable or rejects the request.
        """
        result = await _request_json(
            "LND",
            "POST",
            f"{self.base_url}/v1/invoices",
            timeout=self._timeout,
            verify=self._verify,
            transport=self._transport,
            headers=self._headers,
            json={
                "value": str(amount_sats),
                "memo": description,
                "expiry": str(expiry),
            },
        )

        invoice = result.get("payment_request", "")
        r_hash = result.get("r_hash", "")
        if not invoice or not r_hash:
            raise BackendError("LND returned no invoice")

        try:
            payment_hash = base64.b64decode(r_hash, validate=True).hex()
        except (binascii.Error, ValueError) as exc:
            raise BackendError("LND returned an invalid r_hash") from exc

        return InvoiceResult(invoice=invoice, payment_hash=payment_hash)


def lnurlp_url(address: str) -> str:
    """
    Resolve a lightning address, bech32 LNURL or URL to the lnurl-pay endpoint.

    Raises:
        ConfigurationError: If the address is none of those.
    """
    address = address.strip()
    lowered = address.lower()
    if lowered.startswith(("https://", "http://")):
        return address
    if lowered.startswith(("lnurl1", "lightning:lnurl1")):
        try:
            return decode_lnurl(address)
        except ValueError as exc:
            raise ConfigurationError("LNURL is not valid bech32") from exc

    user, sep, domain = address.partition("@")
    if not sep or not user or not domain or "/" in domain:
        raise ConfigurationError("LNURL address must be a lightning address, URL or bech32 LNURL")
    return f"https://{domain}/.well-known/lnurlp/{user}"


class LnurlPayBackend:
    """
    Invoice creation through LNURL-pay (LUD-06, lightning addresses LUD-16).

    The pay endpoint is fetched for its callback and sendable range, then the
    callback is asked for an invoice of amount_sats * 1000 msats. The payment
    hash is read from the returned bolt11. The receiving service decides the
    invoice expiry.

    Usage:
        backend = LnurlPayBackend("alice@getalby.com")
        result = await backend.create_invoice(amount_sats=10, description="LSAT")
    """

    def __init__(
        self,
        address: str,
        timeout: float = 20.0,
        verify: Any = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            address: Lightning address (user@domain), lnurl-pay URL or bech32 LNURL.
            timeout: Per-request timeout in seconds.
            verify: TLS verification.
            transport: Optional httpx transport (used by tests).
        """
        if not address:
            raise ConfigurationError("LNURL address is required")
        self.address = address
        self.url = lnurlp_url(address)
        self._timeout = timeout
        self._verify = verify
        self._transport = transport

    def __repr__(self) -> str:
        return f"LnurlPayBackend(address={self.address!r})"

    async def create_invoice(
        self,
        amount_sats: int,
        description: str = "",
        expiry: int = 300,
    ) -> InvoiceResult:
        """
        Request an invoice from the LNURL-pay service.

        Args:
            amount_sats: Amount in satoshis.
            description: Sent as a LUD-12 comment when the service allows one.
            expiry: Unused; the service sets the expiry.

        Returns:
            InvoiceResult with invoice and hex payment_hash.

        Raises:
            BackendError: If the service is unreachable, refuses the amount or
                returns an unusable invoice.
        """
        params = await self._get(self.url)
        if params.get("tag") != "payRequest":
            raise BackendError("LNURL endpoint is not a payRequest")

        callback = params.get("callback")
        if not isinstance(callback, str) or not callback:
            raise BackendError("LNURL payRequest has no callback")

        msats = amount_sats * 1000
        min_sendable = _as_int(params.get("minSendable"), 0)
        max_sendable = _as_int(params.get("maxSendable"), msats)
        if not min_sendable <= msats <= max_sendable:
            raise BackendError(
                f"LNURL amount {msats} msats outside {min_sendable}-{max_sendable}"
            )

        query: Dict[str, Union[int, str]] = {"amount": msats}
        comment_allowed = _as_int(params.get("commentAllowed"), 0)
        if description and comment_allowed > 0:
            query["comment"] = description[:comment_allowed]

        result = await self._get(callback, params=query)
        invoice = result.get("pr")
        if not isinstance(invoice, str) or not invoice:
            raise BackendError("LNURL returned no invoice")

        try:
            payment_hash = decode_payment_hash(invoice)
        except ValueError as exc:
            raise BackendError(f"LNURL returned an undecodable invoice: {exc}") from exc

        return InvoiceResult(invoice=invoice, payment_hash=payment_hash)

    async def _get(self, url: str, **kwargs: Any) -> Dict[str, Any]:
        data = await _request_json(
            "LNURL",
            "GET",
            url,
            timeout=self._timeout,
            verify=self._verify,
            transport=self._transport,
            **kwargs,
        )
        if str(data.get("status", "")).upper() == "ERROR":
            reason = data.get("reason") or "unknown error"
            logger.warning(f"LNURL service refused request: {reason}")
            raise BackendError(f"LNURL error: {reason}")
        return data


def _as_int(value: Any, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise BackendError(f"LNURL returned a non-integer limit: {value!r}") from exc


def backend_from_env() -> Union[LndRestBackend, LnurlPayBackend]:
    """
    Build the payment backend named by LSAT_LN_CLIENT_TYPE.

    LND (the default) reads LND_REST_URL and LND_MACAROON_HEX; LNURL reads
    LNURL_ADDRESS.

    Raises:
        ConfigurationError: If the type is unknown or a setting is missing.
    """
    client_type = config.get_str(config.LN_CLIENT_TYPE_ENV, config.LND_CLIENT_TYPE).upper()
    timeout = config.backend_timeout()

    if client_type == config.LND_CLIENT_TYPE:
        base_url = config.get_str(config.LND_REST_URL_ENV)
        macaroon_hex = config.get_str(config.LND_MACAROON_ENV)
        if not base_url:
            raise ConfigurationError(f"{config.LND_REST_URL_ENV} is not set")
        if not macaroon_hex:
            raise ConfigurationError(f"{config.LND_MACAROON_ENV} is not set")
        return LndRestBackend(base_url, macaroon_hex, timeout=timeout)

    if client_type == config.LNURL_CLIENT_TYPE:
        address = config.get_str(config.LNURL_ADDRESS_ENV)
        if not address:
            raise ConfigurationError(f"{config.LNURL_ADDRESS_ENV} is not set")
        return LnurlPayBackend(address, timeout=timeout)

    raise ConfigurationError(f"LN client type not recognized: {client_type}")
