"""Tests for the LND REST and LNURL-pay payment backends."""

import base64
import hashlib
import json

import httpx
import pytest
from bech32 import bech32_encode, convertbits

from conftest import make_bolt11
from fastapi_lsat.backends import LndRestBackend, LnurlPayBackend, backend_from_env, lnurlp_url
from fastapi_lsat.errors import BackendError, ConfigurationError

MACAROON_HEX = "0201036c6e6402f801"
R_HASH = bytes(range(32))


def make_backend(handler):
    return LndRestBackend(
        "https://lnd.test:8080/",
        MACAROON_HEX,
        transport=httpx.MockTransport(handler),
    )


class TestCreateInvoice:
    @pytest.mark.asyncio
    async def test_creates_invoice(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["macaroon"] = request.headers.get("grpc-metadata-macaroon")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "r_hash": base64.b64encode(R_HASH).decode(),
                "payment_request": "lnbc10u1ptest",
                "add_index": "1",
            })

        result = await make_backend(handler).create_invoice(amount_sats=1000, description="LSAT", expiry=600)

        assert result.invoice == "lnbc10u1ptest"
        assert result.payment_hash == R_HASH.hex()
        assert seen["url"] == "https://lnd.test:8080/v1/invoices"
        assert seen["macaroon"] == MACAROON_HEX
        assert seen["body"] == {"value": "1000", "memo": "LSAT", "expiry": "600"}

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        def handler(request):
            return httpx.Response(500, text="internal error")

        with pytest.raises(BackendError, match="500"):
            await make_backend(handler).create_invoice(amount_sats=10)

    @pytest.mark.asyncio
    async def test_transport_error_hides_macaroon(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(BackendError) as exc_info:
            await make_backend(handler).create_invoice(amount_sats=10)
        assert MACAROON_HEX not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_missing_invoice(self):
        def handler(request):
            return httpx.Response(200, json={"r_hash": base64.b64encode(R_HASH).decode()})

        with pytest.raises(BackendError, match="no invoice"):
            await make_backend(handler).create_invoice(amount_sats=10)

    @pytest.mark.asyncio
    async def test_bad_r_hash(self):
        def handler(request):
            return httpx.Response(200, json={"r_hash": "%%%", "payment_request": "lnbc1"})

        with pytest.raises(BackendError, match="r_hash"):
            await make_backend(handler).create_invoice(amount_sats=10)

    @pytest.mark.asyncio
    async def test_non_json(self):
        def handler(request):
            return httpx.Response(200, text="<html>")

        with pytest.raises(BackendError, match="non-json"):
            await make_backend(handler).create_invoice(amount_sats=10)


class TestConstruction:
    def test_requires_url(self):
        with pytest.raises(ConfigurationError):
            LndRestBackend("", MACAROON_HEX)

    def test_requires_macaroon(self):
        with pytest.raises(ConfigurationError):
            LndRestBackend("https://lnd.test", "")

    def test_repr_hides_macaroon(self):
        assert MACAROON_HEX not in repr(LndRestBackend("https://lnd.test", MACAROON_HEX))

    def test_from_env(self, monkeypatch):
        monkeypatch.delenv("LSAT_LN_CLIENT_TYPE", raising=False)
        monkeypatch.setenv("LND_REST_URL", "https://lnd.test:8080")
        monkeypatch.setenv("LND_MACAROON_HEX", MACAROON_HEX)
        backend = backend_from_env()
        assert backend.base_url == "https://lnd.test:8080"

    def test_from_env_missing(self, monkeypatch):
        monkeypatch.delenv("LSAT_LN_CLIENT_TYPE", raising=False)
        monkeypatch.delenv("LND_REST_URL", raising=False)
        monkeypatch.setenv("LND_MACAROON_HEX", MACAROON_HEX)
        with pytest.raises(ConfigurationError, match="LND_REST_URL"):
            backend_from_env()


LNURL_PAYMENT_HASH = hashlib.sha256(b"lnurl preimage").digest()
PAY_URL = "https://pay.test/.well-known/lnurlp/alice"
CALLBACK = "https://pay.test/lnurlp/alice/callback"


def pay_request(**overrides):
    params = {
        "tag": "payRequest",
        "callback": CALLBACK,
        "minSendable": 1000,
        "maxSendable": 100000000,
        "metadata": '[["text/plain","alice"]]',
        "commentAllowed": 4,
    }
    params.update(overrides)
    return params


def make_lnurl_backend(pay_params=None, callback_response=None, seen=None):
    invoice = make_bolt11(LNURL_PAYMENT_HASH)

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if request.url.path == "/.well-known/lnurlp/alice":
            return httpx.Response(200, json=pay_params or pay_request())
        if request.url.path == "/lnurlp/alice/callback":
            return httpx.Response(200, json=callback_response or {"pr": invoice, "routes": []})
        return httpx.Response(404, text="not found")

    backend = LnurlPayBackend("alice@pay.test", transport=httpx.MockTransport(handler))
    return backend, invoice


class TestLnurlPay:
    @pytest.mark.asyncio
    async def test_creates_invoice(self):
        seen = []
        backend, invoice = make_lnurl_backend(seen=seen)

        result = await backend.create_invoice(amount_sats=10, description="LSAT token")

        assert result.invoice == invoice
        assert result.payment_hash == LNURL_PAYMENT_HASH.hex()
        assert [r.method for r in seen] == ["GET", "GET"]
        assert str(seen[0].url) == PAY_URL
        assert seen[1].url.params["amount"] == "10000"
        assert seen[1].url.params["comment"] == "LSAT"

    @pytest.mark.asyncio
    async def test_no_comment_when_not_allowed(self):
        seen = []
        backend, _ = make_lnurl_backend(pay_params=pay_request(commentAllowed=0), seen=seen)
        await backend.create_invoice(amount_sats=10, description="LSAT")
        assert "comment" not in seen[1].url.params

    @pytest.mark.asyncio
    async def test_amount_below_min_sendable(self):
        backend, _ = make_lnurl_backend(pay_params=pay_request(minSendable=50000))
        with pytest.raises(BackendError, match="outside"):
            await backend.create_invoice(amount_sats=10)

    @pytest.mark.asyncio
    async def test_amount_above_max_sendable(self):
        backend, _ = make_lnurl_backend(pay_params=pay_request(maxSendable=5000))
        with pytest.raises(BackendError, match="outside"):
            await backend.create_invoice(amount_sats=10)

    @pytest.mark.asyncio
    async def test_not_a_pay_request(self):
        backend, _ = make_lnurl_backend(pay_params=pay_request(tag="withdrawRequest"))
        with pytest.raises(BackendError, match="payRequest"):
            await backend.create_invoice(amount_sats=10)

    @pytest.mark.asyncio
    async def test_callback_error_status(self):
        backend, _ = make_lnurl_backend(
            callback_response={"status": "ERROR", "reason": "amount too small"},
        )
        with pytest.raises(BackendError, match="amount too small"):
            await backend.create_invoice(amount_sats=10)

    @pytest.mark.asyncio
    async def test_missing_invoice(self):
        backend, _ = make_lnurl_backend(callback_response={"routes": []})
        with pytest.raises(BackendError, match="no invoice"):
            await backend.create_invoice(amount_sats=10)

    @pytest.mark.asyncio
    async def test_undecodable_invoice(self):
        backend, _ = make_lnurl_backend(callback_response={"pr": "lnbc1garbage"})
        with pytest.raises(BackendError, match="undecodable"):
            await backend.create_invoice(amount_sats=10)

    @pytest.mark.asyncio
    async def test_http_error(self):
        def handler(request):
            return httpx.Response(503, text="unavailable")

        backend = LnurlPayBackend(PAY_URL, transport=httpx.MockTransport(handler))
        with pytest.raises(BackendError, match="LNURL returned 503"):
            await backend.create_invoice(amount_sats=10)


class TestLnurlAddress:
    def test_lightning_address(self):
        assert lnurlp_url("alice@pay.test") == PAY_URL

    def test_url_passthrough(self):
        assert lnurlp_url(PAY_URL) == PAY_URL

    def test_bech32_lnurl(self):
        lnurl = bech32_encode("lnurl", convertbits(PAY_URL.encode(), 8, 5, True))
        assert lnurlp_url(lnurl.upper()) == PAY_URL
        assert lnurlp_url("lightning:" + lnurl) == PAY_URL

    def test_rejects_unknown_form(self):
        with pytest.raises(ConfigurationError):
            lnurlp_url("not-an-address")

    def test_requires_address(self):
        with pytest.raises(ConfigurationError):
            LnurlPayBackend("")


class TestBackendFromEnv:
    def test_lnurl(self, monkeypatch):
        monkeypatch.setenv("LSAT_LN_CLIENT_TYPE", "lnurl")
        monkeypatch.setenv("LNURL_ADDRESS", "alice@pay.test")
        backend = backend_from_env()
        assert isinstance(backend, LnurlPayBackend)
        assert backend.url == PAY_URL

    def test_explicit_lnd(self, monkeypatch):
        monkeypatch.setenv("LSAT_LN_CLIENT_TYPE", "LND")
        monkeypatch.setenv("LND_REST_URL", "https://lnd.test:8080")
        monkeypatch.setenv("LND_MACAROON_HEX", MACAROON_HEX)
        assert isinstance(backend_from_env(), LndRestBackend)

    def test_lnurl_missing_address(self, monkeypatch):
        monkeypatch.setenv("LSAT_LN_CLIENT_TYPE", "LNURL")
        monkeypatch.delenv("LNURL_ADDRESS", raising=False)
        with pytest.raises(ConfigurationError, match="LNURL_ADDRESS"):
            backend_from_env()

    def test_unknown_type(self, monkeypatch):
        monkeypatch.setenv("LSAT_LN_CLIENT_TYPE", "CLN")
        with pytest.raises(ConfigurationError, match="not recognized: CLN"):
            backend_from_env()
