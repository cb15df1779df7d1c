"""Tests for configuration validation and startup wiring."""

from pathlib import Path
from unittest.mock import patch

import pytest

from cloudflare_ddns import cli
from cloudflare_ddns.provider import CloudflareDNSProvider


@pytest.fixture
def valid_env(monkeypatch) -> None:
    monkeypatch.setattr(cli, "CF_API_TOKEN", "token")
    monkeypatch.setattr(cli, "CF_EMAIL", "")
    monkeypatch.setattr(cli, "CF_API_KEY", "")
    monkeypatch.setattr(cli, "POLL_INTERVAL_SECONDS", 60)
    monkeypatch.setattr(cli, "HTTP_TIMEOUT_SECONDS", 10.0)
    monkeypatch.setattr(cli, "BIND_PORT", 3000)
    monkeypatch.setattr(cli, "RECORDS_CONFIG_PATH", "")
    monkeypatch.setattr(cli, "IMPORT_ZONES", [])


class TestValidateConfig:
    def test_valid_token_config(self, valid_env) -> None:
        assert cli.validate_config() is True

    def test_email_and_key_pair_is_accepted(self, valid_env, monkeypatch) -> None:
        monkeypatch.setattr(cli, "CF_API_TOKEN", "")
        monkeypatch.setattr(cli, "CF_EMAIL", "me@example.com")
        monkeypatch.setattr(cli, "CF_API_KEY", "key")
        assert cli.validate_config() is True

    def test_missing_credentials(self, valid_env, monkeypatch) -> None:
        monkeypatch.setattr(cli, "CF_API_TOKEN", "")
        monkeypatch.setattr(cli, "CF_EMAIL", "me@example.com")
        assert cli.validate_config() is False

    @pytest.mark.parametrize("interval", [None, 0, -10])
    def test_bad_poll_interval(self, valid_env, monkeypatch, interval) -> None:
        monkeypatch.setattr(cli, "POLL_INTERVAL_SECONDS", interval)
        assert cli.validate_config() is False

    @pytest.mark.parametrize("port", [None, 0, 70000])
    def test_bad_port(self, valid_env, monkeypatch, port) -> None:
        monkeypatch.setattr(cli, "BIND_PORT", port)
        assert cli.validate_config() is False


def test_parse_int() -> None:
    assert cli._parse_int("42") == 42
    assert cli._parse_int("2.5") is None
    assert cli._parse_int("abc") is None


def test_parse_float() -> None:
    assert cli._parse_float("2.5") == 2.5
    assert cli._parse_float("10") == 10.0
    assert cli._parse_float("abc") is None


def test_create_dns_provider_uses_environment(valid_env) -> None:
    provider = cli.create_dns_provider()
    assert isinstance(provider, CloudflareDNSProvider)
    assert provider._session.headers["Authorization"] == "Bearer token"


class TestMain:
    def test_exits_on_invalid_config(self, valid_env, monkeypatch) -> None:
        monkeypatch.setattr(cli, "CF_API_TOKEN", "")

        with pytest.raises(SystemExit) as exc_info:
            cli.main()

        assert exc_info.value.code == 1

    def test_exits_when_provider_unreachable(self, valid_env, dns_provider) -> None:
        with patch.object(dns_provider, "test_connection", return_value=False), patch.object(
            cli, "create_dns_provider", return_value=dns_provider
        ):
            with pytest.raises(SystemExit):
                cli.main()

    def test_exits_on_invalid_records_config(
        self, valid_env, monkeypatch, dns_provider, tmp_path: Path
    ) -> None:
        config_file = tmp_path / "records.yaml"
        config_file.write_text("records:\n  example.com:\n    - ttl: 60\n")
        monkeypatch.setattr(cli, "RECORDS_CONFIG_PATH", str(config_file))

        with patch.object(cli, "create_dns_provider", return_value=dns_provider):
            with pytest.raises(SystemExit):
                cli.main()

    def test_seeds_imports_and_serves(
        self, valid_env, monkeypatch, dns_provider, tmp_path: Path
    ) -> None:
        config_file = tmp_path / "records.yaml"
        config_file.write_text("records:\n  example.com:\n    - name: home.example.com\n")
        monkeypatch.setattr(cli, "RECORDS_CONFIG_PATH", str(config_file))
        monkeypatch.setattr(cli, "IMPORT_ZONES", ["example.org", "unknown.net"])
        dns_provider.add_remote("zone-2", "www.example.org", "1.1.1.1")

        with patch.object(cli, "create_dns_provider", return_value=dns_provider), patch.object(
            cli.uvicorn, "run"
        ) as mock_run:
            cli.main()

        app = mock_run.call_args[0][0]
        assert mock_run.call_args.kwargs["port"] == 3000
        store = app.state.record_store
        assert store.zones() == ["example.com", "example.org"]
        assert store.get("example.org", "www.example.org").content == "1.1.1.1"
