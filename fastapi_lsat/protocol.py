"""
LSAT protocol header parsing and formatting.

Implements the HTTP 402 Payment Required exchange:

WWW-Authenticate: LSAT macaroon=<macaroon>, invoice=<invoice>
Authorization: LSAT <macaroon>:<preimage>
Accept: application/vnd.lsat.v1.full     (client understands challenges)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

SCHEME = "LSAT"
ACCEPT_TOKEN = "application/vnd.lsat.v1.full"
PAYMENT_REQUIRED_MESSAGE = "Payment Required"

_PREFIX = SCHEME.lower() + " "


@dataclass
class LsatCredentials:
    """Parsed LSAT authorization credentials."""
    macaroon: str
    preimage: str


def format_challenge(macaroon: str, invoice: str) -> str:
    """
    Format a WWW-Authenticate header value for a 402 response.

    Args:
        macaroon: Serialized macaroon.
        invoice: Bolt11 invoice string.

    Returns:
        WWW-Authenticate header value.
    """
    return f"{SCHEME} macaroon={macaroon}, invoice={invoice}"


def format_challenge_body() -> Dict[str, Any]:
    """Body of a 402 response."""
    return {
        "code": 402,
        "message": PAYMENT_REQUIRED_MESSAGE,
    }


def has_lsat_scheme(auth_header: Optional[str]) -> bool:
    """True if the Authorization header uses the LSAT scheme, parseable or not."""
    if not auth_header or not isinstance(auth_header, str):
        return False
    trimmed = auth_header.strip().lower()
    return trimmed == SCHEME.lower() or trimmed.startswith(_PREFIX)


def accepts_lsat(accept_header: Optional[str]) -> bool:
    """True if the Accept header announces support for LSAT challenges."""
    if not accept_header or not isinstance(accept_header, str):
        return False
    return ACCEPT_TOKEN in accept_header.lower()


def parse_authorization(auth_header: Optional[str]) -> Optional[LsatCredentials]:
    """
    Parse an Authorization: LSAT header.

    Format: LSAT <macaroon>:<preimage>

    Args:
        auth_header: Full Authorization header value.

    Returns:
        LsatCredentials or None if parsing fails.
    """
    if not has_lsat_scheme(auth_header):
        return None

    credentials = auth_header.strip()[len(_PREFIX):].strip()
    colon_idx = credentials.find(":")
    if colon_idx == -1:
        return None

    macaroon = credentials[:colon_idx].strip()
    preimage = credentials[colon_idx + 1:].strip()

    if not macaroon or not preimage:
        return None

    return LsatCredentials(macaroon=macaroon, preimage=preimage)
