"""Test suite for the InvoTrack CLI."""

import json

import pytest
from typer.testing import CliRunner

from invotrack import cli
from invotrack.cli import app
from vendor_fakes import json_response, text_response

runner = CliRunner()


@pytest.fixture
def cli_env(monkeypatch, settings, vendor_http):
    """Route CLI config and vendor traffic to test doubles."""
    monkeypatch.setattr(cli, "get_config_unvalidated", lambda: settings)
    monkeypatch.setattr(cli, "create_vendor_client", lambda config: vendor_http)
    return vendor_http


def test_cli_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "invotrack version 0.1.0" in result.output


def test_cli_systems_lists_adapters():
    result = runner.invoke(app, ["systems"])
    assert result.exit_code == 0
    assert "caspit" in result.output
    assert "hashavshevet" in result.output


def test_cli_unknown_system_exits_with_usage_code(cli_env):
    result = runner.invoke(app, ["test-connection", "priority"])
    assert result.exit_code == 2
    assert "Unknown POS system" in result.output


def test_cli_test_connection_success(cli_env):
    cli_env.add("GET", "/Token", json_response({"AccessToken": "tok"}))

    result = runner.invoke(
        app,
        ["test-connection", "caspit", "--user", "u", "--pwd", "p", "--tax-id", "5123"],
    )

    assert result.exit_code == 0
    assert "✓" in result.output


def test_cli_test_connection_failure_exits_1(cli_env):
    cli_env.add("GET", "/Token", text_response("nope", status_code=401))

    result = runner.invoke(
        app, ["test-connection", "caspit", "--user", "u", "--pwd", "bad"]
    )

    assert result.exit_code == 1


def test_cli_sync_unknown_type(cli_env):
    result = runner.invoke(app, ["sync", "caspit", "--type", "invoices"])
    assert result.exit_code == 2
    assert "Unknown sync type" in result.output


def test_cli_sync_products_to_file(cli_env, tmp_path):
    cli_env.add("GET", "/items", json_response([{"InternalID": "1", "ItemName": "Milk"}]))
    output_file = tmp_path / "products.json"

    result = runner.invoke(
        app,
        [
            "sync",
            "hashavshevet",
            "-t",
            "products",
            "--api-key",
            "k",
            "--output",
            str(output_file),
        ],
    )

    assert result.exit_code == 0
    data = json.loads(output_file.read_text())
    assert data[0]["items_synced"] == 1
    assert data[0]["products"][0]["id"] == "1"


def test_cli_sync_reads_credentials_from_env(cli_env, monkeypatch, tmp_path):
    monkeypatch.setenv("POS_API_KEY", "env-key")
    cli_env.add("GET", "/items", json_response([]))

    result = runner.invoke(
        app,
        ["sync", "hashavshevet", "-t", "products", "-o", str(tmp_path / "out.json")],
    )

    assert result.exit_code == 0
    assert "env-key" in cli_env.calls[0].headers["Authorization"]


def test_cli_scan_mock(cli_env, tmp_path):
    image = tmp_path / "invoice.jpg"
    image.write_bytes(b"\xff\xd8\xff")

    result = runner.invoke(app, ["scan", str(image), "--mock"])

    assert result.exit_code == 0
    output = result.output
    data = json.loads(output[output.find("{") : output.rfind("}") + 1])
    assert len(data["products"]) == 2


def test_cli_scan_invalid_file():
    result = runner.invoke(app, ["scan", "nonexistent.jpg", "--mock"])
    assert result.exit_code != 0
    assert "does not exist" in result.output.lower()
