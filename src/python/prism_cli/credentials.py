"""Connection settings from secret.conf, endpoint.conf and settings.yaml."""

import json
import logging
import subprocess
from pathlib import Path
from typing import Optional

import yaml

from .models import ConnectionDescriptor, PrismConfig

logger = logging.getLogger(__name__)

# Default location of the Prism Central config files
DEFAULT_CONFIG_DIR = Path.home() / ".secret" / "nutanix"

# {"type":"basic_auth","data":{"prismCentral":{"username":"<user>","password":"<password>"},"prismElements":null}}
SECRET_FILE = "secret.conf"

# {"prismCentral": {"address": "<address>", "port": <port>}}
ENDPOINT_FILE = "endpoint.conf"

# Optional tool settings (verify_ssl, timeout, page_size)
SETTINGS_FILE = "settings.yaml"


class CredentialsError(Exception):
    """Raised when connection settings cannot be loaded."""

    pass


class ConfigReadError(CredentialsError):
    """Raised when a config file cannot be read."""

    pass


class ConfigParseError(CredentialsError):
    """Raised when a config file is not valid or lacks a required field."""

    pass


def _read_json(path: Path) -> dict:
    """Read and parse a JSON config file.

    Args:
        path: File to read

    Returns:
        Parsed JSON object

    Raises:
        ConfigReadError: If the file cannot be read
        ConfigParseError: If the file is not a JSON object
    """
    try:
        text = path.read_text()
    except OSError as e:
        raise ConfigReadError(f"Cannot read {path}: {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigParseError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigParseError(f"Expected a JSON object in {path}")
    return data


def _op_read(reference: str) -> str:
    """Execute 'op read' to fetch a secret from 1Password.

    Args:
        reference: 1Password secret reference (e.g., "op://vault/item/field")

    Returns:
        The secret value

    Raises:
        ConfigReadError: If the op command fails or is not found
    """
    try:
        result = subprocess.run(
            ["op", "read", reference],
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()
    except subprocess.CalledProcessError as e:
        raise ConfigReadError(
            f"Failed to read 1Password reference '{reference}': {e.stderr}"
        ) from e
    except FileNotFoundError:
        raise ConfigReadError(
            "1Password CLI (op) not found. Please install it: "
            "https://developer.1password.com/docs/cli/get-started/"
        ) from None


def _resolve_value(value: str) -> str:
    """Resolve a value, fetching from 1Password if it's an op:// reference."""
    if value.startswith("op://"):
        return _op_read(value)
    return value


def _require_str(section: dict, key: str, path: Path) -> str:
    value = section.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigParseError(f"Missing or empty '{key}' in {path}")
    return value


def load_connection(config_dir: Path = DEFAULT_CONFIG_DIR) -> ConnectionDescriptor:
    """Merge secret.conf and endpoint.conf into a ConnectionDescriptor.

    Credentials come only from secret.conf; address and port come only
    from endpoint.conf.

    Args:
        config_dir: Directory holding both files

    Returns:
        ConnectionDescriptor for Prism Central

    Raises:
        ConfigReadError: If a file cannot be read
        ConfigParseError: If a file is malformed
    """
    secret_path = config_dir / SECRET_FILE
    endpoint_path = config_dir / ENDPOINT_FILE

    secret = _read_json(secret_path)
    endpoint = _read_json(endpoint_path)

    auth_type = secret.get("type")
    if auth_type not in (None, "basic_auth"):
        raise ConfigParseError(
            f"Unsupported credential type '{auth_type}' in {secret_path}. "
            "Only 'basic_auth' is supported."
        )

    data = secret.get("data")
    if not isinstance(data, dict):
        raise ConfigParseError(f"Missing or invalid 'data' in {secret_path}")

    creds = data.get("prismCentral")
    if not isinstance(creds, dict):
        raise ConfigParseError(f"Missing 'data.prismCentral' in {secret_path}")

    pc = endpoint.get("prismCentral")
    if not isinstance(pc, dict):
        raise ConfigParseError(f"Missing 'prismCentral' in {endpoint_path}")

    port = pc.get("port")
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise ConfigParseError(f"Invalid 'port' in {endpoint_path}: {port!r}")

    return ConnectionDescriptor(
        host=_require_str(pc, "address", endpoint_path),
        port=port,
        username=_resolve_value(_require_str(creds, "username", secret_path)),
        password=_resolve_value(_require_str(creds, "password", secret_path)),
    )


def _load_settings(path: Path) -> dict:
    """Load settings.yaml if present.

    Raises:
        ConfigReadError: If the file exists but cannot be read
        ConfigParseError: If the file is not a YAML mapping
    """
    if not path.exists():
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigReadError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigParseError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigParseError(f"Expected a mapping in {path}")
    return data


def load_config(config_dir: Optional[Path] = None) -> PrismConfig:
    """Build the PrismConfig used for the whole run.

    Args:
        config_dir: Directory with secret.conf, endpoint.conf and the
            optional settings.yaml (default: ~/.secret/nutanix)

    Returns:
        PrismConfig

    Raises:
        CredentialsError: If any of the files cannot be loaded
    """
    config_dir = Path(config_dir) if config_dir is not None else DEFAULT_CONFIG_DIR
    logger.debug("Loading Prism Central config from %s", config_dir)

    connection = load_connection(config_dir)
    settings_path = config_dir / SETTINGS_FILE
    settings = _load_settings(settings_path)

    verify_ssl = settings.get("verify_ssl", False)
    if not isinstance(verify_ssl, bool):
        raise ConfigParseError(
            f"Invalid 'verify_ssl' in {settings_path}: {verify_ssl!r} (expected true or false)"
        )

    try:
        return PrismConfig(
            connection=connection,
            verify_ssl=verify_ssl,
            timeout=float(settings.get("timeout", 60)),
            page_size=int(settings.get("page_size", 250)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigParseError(f"Invalid setting in {settings_path}: {e}") from e
