"""
Environment configuration for fastapi-lsat.

Values are read from environment variables. load_env() pulls a .env file
into the environment first, the way a deployment typically provides the
root key and payment backend settings.

Environment Variables:
    LSAT_ROOT_KEY: 32-byte hex root key used to sign macaroons.
    LSAT_LN_CLIENT_TYPE: Payment backend, LND (default) or LNURL.
    LND_REST_URL: Base URL of the LND REST API (e.g. https://localhost:8080).
    LND_MACAROON_HEX: Hex-encoded LND invoice macaroon.
    LNURL_ADDRESS: Lightning address, lnurl-pay URL or bech32 LNURL (LNURL backend).
    LSAT_INVOICE_EXPIRY: Invoice expiry in seconds (default 300).
    LSAT_BACKEND_TIMEOUT: Seconds to wait for invoice creation (default 30).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Final, Optional, Union

from dotenv import load_dotenv

from .errors import ConfigurationError

ROOT_KEY_ENV: Final[str] = "LSAT_ROOT_KEY"
LN_CLIENT_TYPE_ENV: Final[str] = "LSAT_LN_CLIENT_TYPE"
LND_REST_URL_ENV: Final[str] = "LND_REST_URL"
LND_MACAROON_ENV: Final[str] = "LND_MACAROON_HEX"
LNURL_ADDRESS_ENV: Final[str] = "LNURL_ADDRESS"
INVOICE_EXPIRY_ENV: Final[str] = "LSAT_INVOICE_EXPIRY"
BACKEND_TIMEOUT_ENV: Final[str] = "LSAT_BACKEND_TIMEOUT"

LND_CLIENT_TYPE: Final[str] = "LND"
LNURL_CLIENT_TYPE: Final[str] = "LNURL"

DEFAULT_INVOICE_EXPIRY: Final[int] = 300
DEFAULT_BACKEND_TIMEOUT: Final[float] = 30.0


def load_env(path: Union[str, Path] = ".env", override: bool = False) -> bool:
    """
    Load a .env file into the process environment.

    Args:
        path: Path to the .env file.
        override: Replace variables that are already set.

    Returns:
        True if the file was found and loaded.
    """
    return load_dotenv(path, override=override)


def get_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def get_int(name: str, default: int) -> int:
    raw = get_str(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer") from exc


def get_float(name: str, default: float) -> float:
    raw = get_str(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number") from exc


def invoice_expiry() -> int:
    return get_int(INVOICE_EXPIRY_ENV, DEFAULT_INVOICE_EXPIRY)


def backend_timeout() -> float:
    return get_float(BACKEND_TIMEOUT_ENV, DEFAULT_BACKEND_TIMEOUT)
