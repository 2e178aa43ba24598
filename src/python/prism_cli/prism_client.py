"""Minimal client for the Prism Central v3 REST API.

API reference: https://www.nutanix.dev/api_references/prism-central-v3/
"""

import base64
import json
import logging
import ssl
import urllib.error
import urllib.request
from typing import Optional

from .models import PrismConfig, Subnet, VirtualMachine

logger = logging.getLogger(__name__)

API_PATH = "/api/nutanix/v3"


class ClientConstructionError(Exception):
    """Raised when a client cannot be built from the given config."""

    pass


class PrismAPIError(Exception):
    """Raised when a Prism Central request fails.

    Attributes:
        status: HTTP status code, or None if no response was received
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @property
    def transient(self) -> bool:
        """True for failures that may succeed when run again."""
        return self.status is None or self.status == 429 or self.status >= 500


def _create_ssl_context(verify: bool) -> ssl.SSLContext:
    """Create SSL context, skipping certificate verification for self-signed certs."""
    ctx = ssl.create_default_context()
    if not verify:
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    return ctx


def _error_message(body: bytes) -> str:
    """Extract the message_list text from a v3 error response."""
    try:
        data = json.loads(body.decode())
    except (UnicodeDecodeError, json.JSONDecodeError):
        return body.decode(errors="replace").strip()

    if not isinstance(data, dict):
        return str(data)

    messages = []
    for item in data.get("message_list") or []:
        text = item.get("message", "")
        if item.get("reason"):
            text = f"{item['reason']}: {text}"
        messages.append(text)
    return "; ".join(messages) or data.get("message", "") or str(data)


class PrismClient:
    """Blocking client for the vms and subnets endpoints."""

    def __init__(self, config: PrismConfig):
        conn = config.connection
        if not conn.host:
            raise ClientConstructionError("Prism Central address is empty")
        if not conn.username or not conn.password:
            raise ClientConstructionError("Prism Central username and password are required")
        if config.page_size <= 0:
            raise ClientConstructionError(f"Invalid page size: {config.page_size}")

        self.base_url = conn.url + API_PATH
        self.timeout = config.timeout
        self.page_size = config.page_size
        self._ssl_context = _create_ssl_context(config.verify_ssl)
        token = base64.b64encode(f"{conn.username}:{conn.password}".encode()).decode()
        self._auth_header = f"Basic {token}"

    def _request(self, method: str, path: str, body: Optional[dict] = None) -> dict:
        """Send a request and decode the JSON response.

        Raises:
            PrismAPIError: On HTTP errors, network errors or a non-JSON response
        """
        url = self.base_url + path
        data = json.dumps(body).encode() if body is not None else None

        req = urllib.request.Request(url, data=data, method=method)
        req.add_header("Authorization", self._auth_header)
        req.add_header("Accept", "application/json")
        if data is not None:
            req.add_header("Content-Type", "application/json")

        logger.debug("%s %s", method, url)
        try:
            with urllib.request.urlopen(
                req, timeout=self.timeout, context=self._ssl_context
            ) as response:
                payload = response.read()
        except urllib.error.HTTPError as e:
            raise PrismAPIError(
                f"{method} {path} failed with HTTP {e.code}: {_error_message(e.read())}",
                status=e.code,
            ) from e
        except urllib.error.URLError as e:
            raise PrismAPIError(f"{method} {path} failed: {e.reason}") from e
        except TimeoutError as e:
            raise PrismAPIError(f"{method} {path} timed out after {self.timeout}s") from e

        try:
            return json.loads(payload.decode()) if payload else {}
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PrismAPIError(f"Unexpected response from {method} {path}: {e}") from e

    def list_vm_entities(self) -> list[dict]:
        """Return the raw entities of every VM, following pagination."""
        entities = []
        offset = 0
        while True:
            result = self._request(
                "POST",
                "/vms/list",
                {"kind": "vm", "length": self.page_size, "offset": offset},
            )
            page = result.get("entities") or []
            entities.extend(page)
            total = (result.get("metadata") or {}).get("total_matches", len(entities))
            offset += len(page)
            if not page or offset >= total:
                return entities

    def list_vms(self) -> list[VirtualMachine]:
        return [VirtualMachine.from_api(e) for e in self.list_vm_entities()]

    def get_vm(self, uuid: str) -> VirtualMachine:
        return VirtualMachine.from_api(self._request("GET", f"/vms/{uuid}"))

    def get_subnet(self, uuid: str) -> Subnet:
        return Subnet.from_api(self._request("GET", f"/subnets/{uuid}"))

    def update_vm(self, uuid: str, intent: dict) -> dict:
        """Submit a VM intent (api_version, metadata, spec).

        Returns:
            The intent response, including the task reference
        """
        return self._request("PUT", f"/vms/{uuid}", intent)
