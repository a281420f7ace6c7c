"""Tests for the root key store."""

import threading
from unittest.mock import patch

import pytest

from fastapi_lsat.errors import ConfigurationError
from fastapi_lsat.secret import RootSecretStore

KEY = bytes(range(32))


class TestLoad:
    def test_explicit_bytes(self):
        assert RootSecretStore(secret=KEY).load() == KEY

    def test_explicit_hex(self):
        assert RootSecretStore(secret=KEY.hex()).load() == KEY

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("LSAT_ROOT_KEY", KEY.hex())
        assert RootSecretStore().load() == KEY

    def test_custom_env_var(self, monkeypatch):
        monkeypatch.setenv("MY_KEY", KEY.hex())
        assert RootSecretStore(env_var="MY_KEY").load() == KEY

    def test_missing(self, monkeypatch):
        monkeypatch.delenv("LSAT_ROOT_KEY", raising=False)
        with pytest.raises(ConfigurationError, match="LSAT_ROOT_KEY is not set"):
            RootSecretStore().load()

    def test_wrong_length(self):
        with pytest.raises(ConfigurationError, match="32 bytes"):
            RootSecretStore(secret=b"short").load()

    def test_non_hex_env_does_not_leak_value(self, monkeypatch):
        monkeypatch.setenv("LSAT_ROOT_KEY", "not-a-hex-secret-value")
        with pytest.raises(ConfigurationError) as exc_info:
            RootSecretStore().load()
        assert "not-a-hex-secret-value" not in str(exc_info.value)

    def test_ephemeral(self, monkeypatch, caplog):
        monkeypatch.delenv("LSAT_ROOT_KEY", raising=False)
        store = RootSecretStore(allow_ephemeral=True)
        key = store.load()
        assert len(key) == 32
        assert "ephemeral" in caplog.text


class TestLoadOnce:
    def test_cached(self, monkeypatch):
        monkeypatch.setenv("LSAT_ROOT_KEY", KEY.hex())
        store = RootSecretStore()
        assert store.loaded is False
        first = store.load()
        monkeypatch.setenv("LSAT_ROOT_KEY", (b"\x01" * 32).hex())
        assert store.load() == first
        assert store.loaded is True

    def test_concurrent_first_use_resolves_once(self):
        store = RootSecretStore(allow_ephemeral=True, env_var="LSAT_TEST_UNSET_KEY")
        results = []
        barrier = threading.Barrier(16)

        def worker():
            barrier.wait()
            results.append(store.load())

        with patch.object(store, "_resolve", wraps=store._resolve) as resolve:
            threads = [threading.Thread(target=worker) for _ in range(16)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        assert resolve.call_count == 1
        assert len(set(results)) == 1

    def test_repr_hides_key(self):
        store = RootSecretStore(secret=KEY)
        store.load()
        assert KEY.hex() not in repr(store)
