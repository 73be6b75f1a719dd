"""Tests for the domainverify CLI."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from domainverify.cli import main
from domainverify.domains import DomainVerificationService, JsonDomainStore, StaticResolver

NO_SERVICE_ENV = {
    "DOMAINVERIFY_SERVICE_HOST": None,
    "DOMAINVERIFY_TXT_RECORD_VERIFY_KEY": None,
}

SERVICE_OPTIONS = ["--service-host", "svc.example.com", "--txt-key", "key123"]


@pytest.fixture
def storage(tmp_path):
    return str(tmp_path / "domains.json")


def _read_storage(path: str) -> dict:
    with open(path) as f:
        return json.load(f)


class TestCLIBasics:
    """Basic CLI tests."""

    def test_main_with_help(self):
        """Test --help shows help message."""
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "Prove ownership of customer domains" in result.output
        assert "--storage" in result.output

    def test_version_command(self):
        """Test version command."""
        runner = CliRunner()
        result = runner.invoke(main, ["version"])

        assert result.exit_code == 0
        assert "Version:" in result.output
        assert "Python:" in result.output

    def test_config_command(self, storage):
        """Test config shows the effective settings."""
        runner = CliRunner()
        result = runner.invoke(main, ["--storage", storage, "config"], env=NO_SERVICE_ENV)

        assert result.exit_code == 0
        assert json.loads(result.output)["storage_path"] == storage

    def test_missing_config_file(self):
        runner = CliRunner()
        result = runner.invoke(main, ["--config", "/nonexistent/config.yaml", "version"])

        assert result.exit_code != 0

    def test_all_subcommands_available(self):
        runner = CliRunner()
        result = runner.invoke(main, ["domain", "--help"])

        assert result.exit_code == 0
        for command in ("register", "token", "check", "status", "logs", "list"):
            assert command in result.output


class TestDomainCommands:
    """Tests for the domain command group."""

    def test_register(self, storage):
        """Test register persists the record."""
        runner = CliRunner()
        result = runner.invoke(
            main, ["--storage", storage, "domain", "register", "acme.io", "10.0.0.1", "--customer-id", "c1"]
        )

        assert result.exit_code == 0
        assert "Domain registered successfully" in result.output

        data = _read_storage(storage)
        records = list(data["domains"].values())
        assert len(records) == 1
        assert records[0]["name"] == "acme.io"
        assert records[0]["ip"] == "10.0.0.1"
        assert records[0]["customer_id"] == "c1"

    def test_token_prints_instructions(self, storage):
        runner = CliRunner()
        runner.invoke(
            main, ["--storage", storage, "domain", "register", "acme.io", "10.0.0.1", "--customer-id", "c1"]
        )
        result = runner.invoke(
            main,
            ["--storage", storage, "domain", "token", "acme.io", "--customer-id", "c1", *SERVICE_OPTIONS],
        )

        assert result.exit_code == 0
        token = next(iter(_read_storage(storage)["domains"].values()))["verification_token"]
        assert len(token) == 64
        assert "key123=" in result.output
        assert token[:16] in result.output
        assert "svc.example.com" in result.output

    def test_token_requires_service_settings(self, storage):
        """Test a missing service host is a usage error."""
        runner = CliRunner()
        result = runner.invoke(
            main,
            ["--storage", storage, "domain", "token", "acme.io", "--customer-id", "c1"],
            env=NO_SERVICE_ENV,
        )

        assert result.exit_code == 2
        assert "DOMAINVERIFY_SERVICE_HOST" in result.output

    def test_token_unknown_domain(self, storage):
        runner = CliRunner()
        result = runner.invoke(
            main,
            ["--storage", storage, "domain", "token", "acme.io", "--customer-id", "c1", *SERVICE_OPTIONS],
        )

        assert result.exit_code == 1
        assert "Domain not found" in result.output

    def test_check_verifies_domain(self, storage):
        """Test check runs the TXT and CNAME steps against DNS."""
        runner = CliRunner()
        runner.invoke(
            main, ["--storage", storage, "domain", "register", "acme.io", "10.0.0.1", "--customer-id", "c1"]
        )
        runner.invoke(
            main,
            ["--storage", storage, "domain", "token", "acme.io", "--customer-id", "c1", *SERVICE_OPTIONS],
        )
        token = next(iter(_read_storage(storage)["domains"].values()))["verification_token"]
        resolver = StaticResolver(
            txt={"acme.io": [[f"key123={token}"]]},
            cname={"acme.io": ["svc.example.com"]},
        )

        with patch(
            "domainverify.server.build_service",
            side_effect=lambda settings: DomainVerificationService(
                JsonDomainStore(settings.storage_path), resolver
            ),
        ):
            result = runner.invoke(
                main,
                ["--storage", storage, "domain", "check", "acme.io", "--customer-id", "c1", *SERVICE_OPTIONS],
            )

        assert result.exit_code == 0
        assert "Domain verified successfully" in result.output
        record = next(iter(_read_storage(storage)["domains"].values()))
        assert record["is_verified"] is True
        assert record["verification_token"] is None

    def test_check_txt_failure(self, storage):
        runner = CliRunner()
        runner.invoke(
            main, ["--storage", storage, "domain", "register", "acme.io", "10.0.0.1", "--customer-id", "c1"]
        )
        runner.invoke(
            main,
            ["--storage", storage, "domain", "token", "acme.io", "--customer-id", "c1", *SERVICE_OPTIONS],
        )

        with patch(
            "domainverify.server.build_service",
            side_effect=lambda settings: DomainVerificationService(
                JsonDomainStore(settings.storage_path), StaticResolver()
            ),
        ):
            result = runner.invoke(
                main,
                ["--storage", storage, "domain", "check", "acme.io", "--customer-id", "c1", *SERVICE_OPTIONS],
            )

        assert result.exit_code == 1
        assert "TXT record verification failed" in result.output

    def test_status_json(self, storage):
        runner = CliRunner()
        runner.invoke(
            main, ["--storage", storage, "domain", "register", "acme.io", "10.0.0.1", "--customer-id", "c1"]
        )
        result = runner.invoke(
            main, ["--storage", storage, "domain", "status", "acme.io", "--customer-id", "c1", "--json"]
        )

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["domain"] == "acme.io"
        assert data["isVerified"] is False
        assert data["hasActivePendingVerification"] is False

    def test_status_not_found(self, storage):
        runner = CliRunner()
        result = runner.invoke(
            main, ["--storage", storage, "domain", "status", "acme.io", "--customer-id", "c1"]
        )

        assert result.exit_code == 1
        assert "Domain not found" in result.output

    def test_logs_json(self, storage):
        runner = CliRunner()
        runner.invoke(
            main, ["--storage", storage, "domain", "register", "acme.io", "10.0.0.1", "--customer-id", "c1"]
        )
        runner.invoke(
            main,
            ["--storage", storage, "domain", "token", "acme.io", "--customer-id", "c1", *SERVICE_OPTIONS],
        )
        result = runner.invoke(
            main, ["--storage", storage, "domain", "logs", "acme.io", "--customer-id", "c1", "--json"]
        )

        assert result.exit_code == 0
        entries = json.loads(result.output)
        assert [entry["step"] for entry in entries] == ["token_generated"]
        assert entries[0]["status"] == "pending"

    def test_list_empty(self, storage):
        runner = CliRunner()
        result = runner.invoke(main, ["--storage", storage, "domain", "list"])

        assert result.exit_code == 0
        assert "No domains registered" in result.output

    def test_list_json(self, storage):
        runner = CliRunner()
        runner.invoke(main, ["--storage", storage, "domain", "register", "acme.io", "10.0.0.1"])
        runner.invoke(main, ["--storage", storage, "domain", "register", "beta.io", "10.0.0.2"])
        result = runner.invoke(main, ["--storage", storage, "domain", "list", "--json"])

        assert result.exit_code == 0
        names = sorted(record["name"] for record in json.loads(result.output))
        assert names == ["acme.io", "beta.io"]
