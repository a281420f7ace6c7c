"""
Root key storage.

The root key signs every macaroon this server issues. It is resolved once,
on first use, and is read-only afterwards. Concurrent first use is safe:
the load runs under a lock and exactly one caller performs it.
"""

from __future__ import annotations

import logging
import secrets
import threading
from typing import Optional, Union

from . import config
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

ROOT_KEY_SIZE = 32


def _parse_key(value: Union[str, bytes], source: str) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        key = bytes(value)
    else:
        try:
            key = bytes.fromhex(value.strip())
        except ValueError as exc:
            raise ConfigurationError(f"{source} must be hex-encoded") from exc

    if len(key) != ROOT_KEY_SIZE:
        raise ConfigurationError(f"{source} must be {ROOT_KEY_SIZE} bytes")
    return key


class RootSecretStore:
    """
    Holds the server's macaroon root key.

    Usage:
        store = RootSecretStore()             # reads LSAT_ROOT_KEY
        store = RootSecretStore(secret=key)   # explicit bytes or hex
        key = store.load()
    """

    def __init__(
        self,
        secret: Optional[Union[str, bytes]] = None,
        env_var: str = config.ROOT_KEY_ENV,
        allow_ephemeral: bool = False,
    ):
        """
        Args:
            secret: Explicit root key (32 bytes, or 64 hex chars).
            env_var: Environment variable to read when no explicit key is given.
            allow_ephemeral: Generate a random key if none is configured.
        """
        self._explicit = secret
        self._env_var = env_var
        self._allow_ephemeral = allow_ephemeral
        self._key: Optional[bytes] = None
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"RootSecretStore(env_var={self._env_var!r}, loaded={self.loaded})"

    @property
    def loaded(self) -> bool:
        return self._key is not None

    def load(self) -> bytes:
        """
        Return the root key, resolving it on first call.

        Raises:
            ConfigurationError: If no usable key is configured.
        """
        key = self._key
        if key is not None:
            return key

        with self._lock:
            if self._key is None:
                self._key = self._resolve()
            return self._key

    def _resolve(self) -> bytes:
        if self._explicit:
            return _parse_key(self._explicit, "root key")

        raw = config.get_str(self._env_var)
        if raw is not None:
            return _parse_key(raw, self._env_var)

        if self._allow_ephemeral:
            logger.warning(
                f"{self._env_var} is not set. Generated an ephemeral root key; "
                "issued tokens will not verify after a restart."
            )
            return secrets.token_bytes(ROOT_KEY_SIZE)

        raise ConfigurationError(f"{self._env_var} is not set")
