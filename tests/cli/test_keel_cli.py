"""
Tests for the keel CLI — version, config show, openapi, serve failures.
"""

from __future__ import annotations

import json

from typer.testing import CliRunner

from keel import __version__
from keel.cli.app import app

runner = CliRunner()


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.output.strip() == f"keel {__version__}"


class TestConfigShow:
    def test_table(self):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "HTTP_PORT" in result.output
        assert "3000" in result.output

    def test_json(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "prod")
        monkeypatch.setenv("APP_RATELIMIT_RPS", "5")
        result = runner.invoke(app, ["config", "show", "--format", "json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["environment"] == "production"
        assert data["log_format"] == "json"
        assert data["rate_limit"] == {"rps": 5, "burst": 20, "trust_proxy": False}

    def test_reads_env_file(self, tmp_path):
        env_file = tmp_path / "custom.env"
        env_file.write_text("HTTP_PORT=4321\n")
        result = runner.invoke(app, ["config", "show", "--format", "json", "--env-file", str(env_file)])
        assert result.exit_code == 0
        assert json.loads(result.output)["port"] == 4321

    def test_invalid_configuration_exits_1(self, monkeypatch):
        monkeypatch.setenv("HTTP_PORT", "not-a-port")
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 1
        assert "HTTP_PORT" in result.output


class TestOpenapi:
    def test_stdout(self):
        result = runner.invoke(app, ["openapi"])
        assert result.exit_code == 0
        doc = json.loads(result.output)
        assert set(doc["paths"]) == {"/health"}
        assert doc["info"]["title"] == "keel"

    def test_output_file(self, tmp_path):
        target = tmp_path / "docs" / "openapi.json"
        result = runner.invoke(app, ["openapi", "--output", str(target)])
        assert result.exit_code == 0
        assert "/health" in json.loads(target.read_text())["paths"]


class TestServe:
    def test_invalid_configuration_exits_1(self, monkeypatch):
        monkeypatch.setenv("HTTP_HOST", "not-an-ip")
        result = runner.invoke(app, ["serve"])
        assert result.exit_code == 1

    def test_exit_status_is_forwarded(self, monkeypatch):
        calls = []

        def fake_main(env_file):
            calls.append(env_file)
            return 0

        monkeypatch.setattr("keel.cli.serve.main", fake_main)
        result = runner.invoke(app, ["serve", "--env-file", "other.env"])
        assert result.exit_code == 0
        assert str(calls[0]) == "other.env"
