"""Shared fakes for the LSAT tests."""

import hashlib
from dataclasses import dataclass
from typing import Dict, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from bech32 import CHARSET, bech32_encode, convertbits

from fastapi_lsat.secret import RootSecretStore

ROOT_KEY = bytes(range(32))
PREIMAGE = "deadbeefdeadbeefdeadbeefdeadbeefdeadbeefdeadbeefdeadbeefdeadbeef"
PAYMENT_HASH = hashlib.sha256(bytes.fromhex(PREIMAGE)).hexdigest()
INVOICE = "lnbc10u1pjqtest..."


@dataclass
class FakeInvoiceResult:
    invoice: str = INVOICE
    payment_hash: str = PAYMENT_HASH


def make_fake_backend(result: Optional[FakeInvoiceResult] = None):
    """Create a mock payment backend for testing."""
    backend = AsyncMock()
    backend.create_invoice = AsyncMock(return_value=result or FakeInvoiceResult())
    return backend


def make_fake_request(
    path: str = "/api/test",
    method: str = "GET",
    auth_header: Optional[str] = None,
    accept: Optional[str] = None,
):
    """Create a mock FastAPI Request object."""
    request = MagicMock()
    request.url.path = path
    request.method = method
    headers: Dict[str, str] = {}
    if auth_header is not None:
        headers["authorization"] = auth_header
    if accept is not None:
        headers["accept"] = accept
    request.headers = headers
    return request


@pytest.fixture
def store():
    return RootSecretStore(secret=ROOT_KEY)


@pytest.fixture
def backend():
    return make_fake_backend()


def make_bolt11(payment_hash: bytes, hrp: str = "lnbc100n", extra_fields=()) -> str:
    """Build a checksummed BOLT11 string carrying payment_hash (signature zeroed)."""
    timestamp = [0, 0, 0, 0, 0, 0, 1]
    memo = convertbits(b"LSAT", 8, 5, True)
    fields = [CHARSET.index("d"), 0, len(memo)] + memo
    for tag, words in extra_fields:
        fields += [CHARSET.index(tag), len(words) // 32, len(words) % 32] + list(words)
    fields += [CHARSET.index("p"), 1, 20] + convertbits(payment_hash, 8, 5, True)
    return bech32_encode(hrp, timestamp + fields + [0] * 104)
