"""Tests for loading secret.conf, endpoint.conf and settings.yaml."""

import json
import subprocess
from unittest.mock import patch

import pytest

from prism_cli.credentials import (
    ConfigParseError,
    ConfigReadError,
    CredentialsError,
    load_config,
    load_connection,
)
from prism_cli.models import ConnectionDescriptor


def test_merges_secret_and_endpoint(config_dir):
    conn = load_connection(config_dir)

    assert conn == ConnectionDescriptor(
        host="pc.example.com", port=9440, username="admin", password="s3cret"
    )
    assert conn.url == "https://pc.example.com:9440"


def test_address_only_taken_from_endpoint(config_dir):
    secret = json.loads((config_dir / "secret.conf").read_text())
    secret["data"]["prismCentral"]["address"] = "ignored.example.com"
    secret["data"]["prismCentral"]["port"] = 1
    (config_dir / "secret.conf").write_text(json.dumps(secret))

    conn = load_connection(config_dir)

    assert (conn.host, conn.port) == ("pc.example.com", 9440)


def test_missing_file(tmp_path):
    with pytest.raises(ConfigReadError, match="secret.conf"):
        load_connection(tmp_path)


def test_invalid_json(config_dir):
    (config_dir / "endpoint.conf").write_text("{not json")
    with pytest.raises(ConfigParseError, match="Invalid JSON"):
        load_connection(config_dir)


@pytest.mark.parametrize("port", ["9440", 0, 70000, True, None])
def test_invalid_port(config_dir, port):
    (config_dir / "endpoint.conf").write_text(
        json.dumps({"prismCentral": {"address": "pc", "port": port}})
    )
    with pytest.raises(ConfigParseError, match="port"):
        load_connection(config_dir)


def test_missing_password(config_dir):
    (config_dir / "secret.conf").write_text(
        json.dumps({"type": "basic_auth", "data": {"prismCentral": {"username": "admin"}}})
    )
    with pytest.raises(ConfigParseError, match="password"):
        load_connection(config_dir)


@pytest.mark.parametrize("data", ["oops", ["admin"], None])
def test_invalid_data_section(config_dir, data):
    (config_dir / "secret.conf").write_text(json.dumps({"type": "basic_auth", "data": data}))
    with pytest.raises(ConfigParseError, match="data"):
        load_connection(config_dir)


def test_unsupported_auth_type(config_dir):
    (config_dir / "secret.conf").write_text(json.dumps({"type": "kerberos", "data": {}}))
    with pytest.raises(ConfigParseError, match="kerberos"):
        load_connection(config_dir)


def test_errors_share_base_class():
    assert issubclass(ConfigReadError, CredentialsError)
    assert issubclass(ConfigParseError, CredentialsError)


@patch("prism_cli.credentials.subprocess.run")
def test_resolves_1password_references(mock_run, config_dir):
    (config_dir / "secret.conf").write_text(json.dumps({
        "type": "basic_auth",
        "data": {"prismCentral": {"username": "admin", "password": "op://lab/prism/password"}},
    }))
    mock_run.return_value = subprocess.CompletedProcess(
        args=[], returncode=0, stdout="from-vault\n", stderr=""
    )

    conn = load_connection(config_dir)

    assert conn.password == "from-vault"
    mock_run.assert_called_once_with(
        ["op", "read", "op://lab/prism/password"],
        capture_output=True,
        text=True,
        check=True,
    )


@patch("prism_cli.credentials.subprocess.run", side_effect=FileNotFoundError)
def test_missing_1password_cli(mock_run, config_dir):
    (config_dir / "secret.conf").write_text(json.dumps({
        "data": {"prismCentral": {"username": "op://lab/prism/user", "password": "x"}},
    }))
    with pytest.raises(ConfigReadError, match="1Password CLI"):
        load_connection(config_dir)


def test_default_settings(config_dir):
    config = load_config(config_dir)

    assert config.verify_ssl is False
    assert config.timeout == 60
    assert config.page_size == 250


def test_settings_yaml(config_dir):
    (config_dir / "settings.yaml").write_text("verify_ssl: true\ntimeout: 15\npage_size: 50\n")

    config = load_config(config_dir)

    assert config.verify_ssl is True
    assert config.timeout == 15
    assert config.page_size == 50


def test_invalid_settings_yaml(config_dir):
    (config_dir / "settings.yaml").write_text("timeout: [1, 2\n")
    with pytest.raises(ConfigParseError, match="Invalid YAML"):
        load_config(config_dir)


def test_invalid_setting_value(config_dir):
    (config_dir / "settings.yaml").write_text("timeout: soon\n")
    with pytest.raises(ConfigParseError, match="Invalid setting"):
        load_config(config_dir)


@pytest.mark.parametrize("value", ['"false"', "'no'", "0", "1"])
def test_verify_ssl_must_be_boolean(config_dir, value):
    (config_dir / "settings.yaml").write_text(f"verify_ssl: {value}\n")
    with pytest.raises(ConfigParseError, match="verify_ssl"):
        load_config(config_dir)
