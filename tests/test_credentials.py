"""Tests for credential pool parsing."""

import pytest

from genproxy.core.config import UpstreamSettings
from genproxy.services.credentials import (
    MAX_CREDENTIALS,
    load_credential_pool,
    parse_credentials,
)


class TestParseCredentials:
    def test_keeps_order(self) -> None:
        assert parse_credentials("k3,k1,k2") == ["k3", "k1", "k2"]

    def test_trims_and_drops_blanks(self) -> None:
        assert parse_credentials(" k1 , , k2,") == ["k1", "k2"]

    @pytest.mark.parametrize("value", [None, "", " , ,"])
    def test_empty(self, value: str | None) -> None:
        assert parse_credentials(value) == []

    def test_caps_pool_size(self) -> None:
        keys = ",".join(f"k{i}" for i in range(8))

        assert parse_credentials(keys) == ["k0", "k1", "k2", "k3", "k4"]
        assert MAX_CREDENTIALS == 5

    def test_duplicates_are_kept(self) -> None:
        assert parse_credentials("k1,k1") == ["k1", "k1"]


class TestLoadCredentialPool:
    def test_plural_wins_over_singular(self) -> None:
        cfg = UpstreamSettings(generative_api_keys="a,b", generative_api_key="single")

        assert load_credential_pool(cfg) == ["a", "b"]

    def test_falls_back_to_singular(self) -> None:
        cfg = UpstreamSettings(generative_api_keys=None, generative_api_key=" single ")

        assert load_credential_pool(cfg) == ["single"]

    def test_blank_plural_falls_back_to_singular(self) -> None:
        cfg = UpstreamSettings(generative_api_keys=" , ", generative_api_key="single")

        assert load_credential_pool(cfg) == ["single"]

    def test_nothing_configured(self) -> None:
        cfg = UpstreamSettings(generative_api_keys=None, generative_api_key=None)

        assert load_credential_pool(cfg) == []

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GENERATIVE_API_KEYS", "env1,env2")

        assert load_credential_pool(UpstreamSettings()) == ["env1", "env2"]
