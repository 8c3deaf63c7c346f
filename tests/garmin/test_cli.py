"""Tests for the garmin-auth command line."""

import json

import pytest
from typer.testing import CliRunner

from garmin import cli
from garmin.client import GarminClient

runner = CliRunner()


@pytest.fixture
def cli_server(monkeypatch, server, clock, wire):
    """Route the CLI's client through the scripted server."""
    monkeypatch.setenv("MFA_SECRET_KEY", wire.secret_key)
    monkeypatch.setenv("GARMIN_DOMAIN", "garmin.com")

    def build(config):
        return GarminClient(config, transport=server, clock=clock)

    monkeypatch.setattr(cli, "GarminClient", build)
    return server


def _json_from(output: str) -> dict:
    return json.loads(output[output.index("{"):])


class TestLogin:
    """Tests for the login command."""

    def test_json_output(self, cli_server):
        result = runner.invoke(
            cli.app, ["login", "--email", "runner@example.com", "--password", "pw", "--json"]
        )

        assert result.exit_code == 0, result.output
        payload = _json_from(result.output)
        assert payload["signing"]["key"] == "oauth1-token"
        assert payload["bearer"]["access_token"] == "access-1"

    def test_summary_output(self, cli_server):
        result = runner.invoke(cli.app, ["login", "-e", "runner@example.com", "-p", "pw"])

        assert result.exit_code == 0, result.output
        assert "Login successful" in result.output
        assert "OAuth2 access token" in result.output

    def test_mfa_code_is_prompted(self, cli_server, pages, wire):
        cli_server.route("POST", wire.urls.SIGNIN_URL, wire.html(pages.mfa))

        result = runner.invoke(
            cli.app,
            ["login", "-e", "runner@example.com", "-p", "pw", "--json"],
            input="123456\n",
        )

        assert result.exit_code == 0, result.output
        assert "Enter MFA code" in result.output
        mfa_post = cli_server.requests_to("POST", wire.urls.MFA_VERIFY)[0]
        assert wire.form_of(mfa_post)["mfa-code"] == "123456"
        assert _json_from(result.output)["bearer"]["access_token"] == "access-1"

    def test_rejected_credentials(self, cli_server, pages, wire):
        cli_server.route(
            "POST", wire.urls.SIGNIN_URL, wire.html(pages.invalid_credentials, status=401)
        )

        result = runner.invoke(cli.app, ["login", "-e", "runner@example.com", "-p", "wrong"])

        assert result.exit_code == 1
        assert "Login failed" in result.output

    def test_missing_secret(self, cli_server, monkeypatch):
        monkeypatch.delenv("MFA_SECRET_KEY")

        result = runner.invoke(cli.app, ["login", "-e", "runner@example.com", "-p", "pw"])

        assert result.exit_code == 1
        assert "Configuration error" in result.output
        assert cli_server.requests == []
