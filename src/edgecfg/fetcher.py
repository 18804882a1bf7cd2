"""
Assembling a service model from the remote configuration API.

The HTTP client itself is not part of edgecfg; anything implementing
ServiceClient can be plugged in. Offline JSON dumps of an assembled service
(for example from ``service.json`` of another checkout) are loaded with
load_service_json.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Protocol

from .config import NOISY_FIELDS
from .errors import FatalUserError
from .model import ServiceConfig
from .reporting import Reporter, quiet_reporter
from .utils import read_file_safe

ACTIVE = "active"


class ServiceClient(Protocol):
    """The remote API calls needed to assemble one service version."""

    def fetch_service_detail(self, service_id: str, version: int | None = None) -> dict[str, Any]:
        """Service detail with ``version``, ``active_version`` and ``versions``."""
        ...

    def list_acl_entries(self, service_id: str, acl_id: str) -> list[dict[str, Any]]: ...

    def list_dictionary_items(self, service_id: str, dictionary_id: str) -> list[dict[str, Any]]: ...

    def get_dictionary_info(self, service_id: str, version: int, dictionary_id: str) -> dict[str, Any]: ...

    def enabled_products(self, service_id: str) -> dict[str, Any]: ...


def _describe_version(version: int | str | None) -> str:
    if version is None:
        return "latest version"
    if version == ACTIVE:
        return "active version"
    return f"version {version}"


def assemble_service(
    client: ServiceClient,
    service_id: str,
    version: int | str | None = None,
    reporter: Reporter | None = None,
) -> ServiceConfig:
    """
    Fetch one version of a service with all sub-resources filled in.

    Args:
        client: Remote API client
        service_id: Service to fetch
        version: Version number, "active", or None for the latest version
        reporter: Receives progress and warnings

    Returns:
        The assembled service
    """
    reporter = reporter or quiet_reporter()
    reporter.info(f"Fetching service {service_id} at {_describe_version(version)}...")

    details = client.fetch_service_detail(service_id, None if version in (None, ACTIVE) else int(version))
    selected = details.get("active_version") if version == ACTIVE else details.get("version")
    if not selected:
        raise FatalUserError(f"Service {service_id} has no {_describe_version(version)}")

    data = copy.deepcopy(selected)
    data["version"] = data.get("number")
    data["service_id"] = service_id
    data["name"] = details.get("name")
    data["type"] = details.get("type")

    if data["type"] != "vcl":
        reporter.warn(f"Service type is {data['type']}. edgecfg is only tested with 'vcl' services.")

    versions = details.get("versions") or []
    active = (details.get("active_version") or {}).get("number")
    latest = versions[-1].get("number") if versions else None
    reporter.info(f"- Version {data['version']} (active {active}, latest {latest})")

    reporter.info("- Loading ACLs...")
    for acl in data.get("acls") or []:
        acl["entries"] = client.list_acl_entries(service_id, acl["id"])

    reporter.info("- Loading dictionaries...")
    for dictionary in data.get("dictionaries") or []:
        dictionary["info"] = client.get_dictionary_info(service_id, data["version"], dictionary["id"])
        if dictionary.get("write_only"):
            dictionary["items"] = []
        else:
            dictionary["items"] = client.list_dictionary_items(service_id, dictionary["id"])

    data["products"] = client.enabled_products(service_id)

    for key in NOISY_FIELDS:
        data.pop(key, None)

    service = ServiceConfig.from_dict(data)

    unsupported = service.unsupported_features()
    if unsupported:
        reporter.warn("Service uses features edgecfg does not support: " + ", ".join(unsupported))

    return service


def load_service_json(path: Path) -> ServiceConfig:
    """Load an assembled service from a JSON file."""
    if not path.is_file():
        raise FatalUserError(f"File not found: {path}")
    content, _ = read_file_safe(path)
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise FatalUserError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise FatalUserError(f"{path} must contain a JSON object")
    return ServiceConfig.from_dict(data)
