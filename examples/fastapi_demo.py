"""
⚡ fastapi-lsat FastAPI Demo

Complete working example of LSAT Lightning paywalls with FastAPI.

Run:
    pip install -e ".[demo]"
    LND_REST_URL="https://localhost:8080" LND_MACAROON_HEX="..." LSAT_ROOT_KEY="<64 hex>" \
        python examples/fastapi_demo.py

With a lightning address instead of a node:
    LSAT_LN_CLIENT_TYPE=LNURL LNURL_ADDRESS="you@getalby.com" LSAT_ROOT_KEY="<64 hex>" \
        python examples/fastapi_demo.py

Or without a node (uses a mock backend that can "pay" its own invoices):
    python examples/fastapi_demo.py

Try it:
    curl -i http://localhost:8402/protected
    curl -i -H "Accept: application/vnd.lsat.v1.full" http://localhost:8402/protected
    curl http://localhost:8402/demo/pay/<invoice>          # mock only
    curl -H "Authorization: LSAT <macaroon>:<preimage>" http://localhost:8402/protected
"""

import hashlib
import logging
import os
import secrets
from typing import Dict

import uvicorn
from fastapi import Depends, FastAPI, HTTPException

from fastapi_lsat import InvoiceResult, LsatInfo, create_lsat
from fastapi_lsat.config import load_env

FREE_CONTENT_MESSAGE = "Free Content"
PROTECTED_CONTENT_MESSAGE = "Protected Content"

# --- Mock backend for demo (when no LSAT_LN_CLIENT_TYPE or LND_REST_URL is set) ---


class MockBackend:
    """Mock backend that issues fake invoices and remembers their preimages."""

    def __init__(self):
        self.preimages: Dict[str, str] = {}

    async def create_invoice(self, amount_sats: int, description: str = "", expiry: int = 300):
        preimage = secrets.token_bytes(32)
        payment_hash = hashlib.sha256(preimage).hexdigest()
        invoice = f"lnbc{amount_sats}0n1demo{secrets.token_hex(20)}"
        self.preimages[invoice] = preimage.hex()
        return InvoiceResult(invoice=invoice, payment_hash=payment_hash)


# --- Setup ---

logging.basicConfig(level=logging.DEBUG if os.environ.get("LSAT_DEBUG") else logging.INFO)
load_env()

app = FastAPI(
    title="fastapi-lsat Demo",
    description="LSAT Lightning paywall demo with FastAPI",
    version="0.1.0",
)

mock_backend = None
if os.environ.get("LSAT_LN_CLIENT_TYPE") or os.environ.get("LND_REST_URL"):
    lsat = create_lsat(secret=os.environ.get("LSAT_ROOT_KEY"))
    print(f"⚡ Using {lsat.issuer.backend!r}")
else:
    mock_backend = MockBackend()
    lsat = create_lsat(backend=mock_backend, secret=os.environ.get("LSAT_ROOT_KEY") or secrets.token_bytes(32))
    print("🧪 Using mock backend (set LSAT_LN_CLIENT_TYPE=LND|LNURL for real payments)")

lsat.install(app)


# --- Routes ---


@app.get("/")
async def root():
    """Welcome page with available endpoints."""
    return {
        "service": "fastapi-lsat demo",
        "endpoints": {
            "GET /protected": {"price": "5 sats", "description": "Free content unless the client speaks LSAT"},
            "GET /paid-only": {"price": "21 sats", "description": "Rejects unpaid requests"},
        },
        "how_to_pay": {
            "step1": "GET /protected with Accept: application/vnd.lsat.v1.full to receive a 402 + invoice",
            "step2": "Pay the invoice with any Lightning wallet",
            "step3": "Retry with Authorization: LSAT <macaroon>:<preimage>",
        },
    }


@app.get("/protected")
async def protected(info: LsatInfo = Depends(lsat(sats=5))):
    """Protected content for paying clients, free content for everyone else."""
    if info.paid:
        return {"message": PROTECTED_CONTENT_MESSAGE, "paymentHash": info.payment_hash, "tokenId": info.token_id}
    if info.error_code:
        raise HTTPException(status_code=401, detail={"code": 401, "message": info.error})
    return {"message": FREE_CONTENT_MESSAGE}


@app.get("/paid-only")
async def paid_only(info: LsatInfo = Depends(lsat(sats=21, require_payment=True))):
    return {"message": PROTECTED_CONTENT_MESSAGE, "paymentHash": info.payment_hash}


@app.get("/demo/pay/{invoice}")
async def demo_pay(invoice: str):
    """Settle a mock invoice: returns the preimage a wallet would receive."""
    if mock_backend is None or invoice not in mock_backend.preimages:
        raise HTTPException(status_code=404, detail={"code": 404, "message": "Unknown invoice"})
    return {"preimage": mock_backend.preimages[invoice]}


# --- Run ---

if __name__ == "__main__":
    print("\n⚡ fastapi-lsat FastAPI Demo")
    print("=" * 40)
    print("Endpoints:")
    print("  GET /           — Welcome page")
    print("  GET /protected  — 5 sats (free without LSAT Accept header)")
    print("  GET /paid-only  — 21 sats")
    print()
    print("Test:")
    print('  curl -i -H "Accept: application/vnd.lsat.v1.full" http://localhost:8402/protected')
    print()
    uvicorn.run(app, host="0.0.0.0", port=8402)
