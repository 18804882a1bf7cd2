"""
Service configuration model.

The remote store returns a service version as a loosely shaped JSON object.
These dataclasses give the resources edgecfg works with an explicit shape,
while every field they do not name is kept in an ``extra`` bag so nothing is
dropped on the way to disk and back. ``to_dict`` uses the remote JSON field
names throughout.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from .config import LOG_TYPES, RESOURCE_KEYS, SUPPORTED_FEATURES


def _split_known(data: dict[str, Any], known: tuple[str, ...]) -> dict[str, Any]:
    """Return the entries of data whose keys are not in known."""
    return {k: v for k, v in data.items() if k not in known}


def _parse_priority(value: Any, default: int = 100) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class DictionaryItem:
    key: str
    value: str

    def to_dict(self) -> dict[str, Any]:
        return {"item_key": self.key, "item_value": self.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DictionaryItem:
        return cls(key=str(data.get("item_key", "")), value=str(data.get("item_value", "")))


@dataclass
class DictionaryInfo:
    """Metadata the remote store reports about a dictionary."""

    last_updated: str | None = None
    item_count: int | None = None
    digest: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.last_updated is not None:
            result["last_updated"] = self.last_updated
        if self.item_count is not None:
            result["item_count"] = self.item_count
        if self.digest is not None:
            result["digest"] = self.digest
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> DictionaryInfo:
        data = data or {}
        count = data.get("item_count")
        return cls(
            last_updated=data.get("last_updated"),
            item_count=int(count) if count is not None else None,
            digest=data.get("digest"),
        )


@dataclass
class Dictionary:
    """
    Key/value table attached to a service version.

    Write-only dictionaries never return their item values from the remote
    store; ``items`` is empty after a fetch and ``info.item_count`` is the
    only hint about the remote content.
    """

    name: str
    write_only: bool = False
    items: list[DictionaryItem] = field(default_factory=list)
    info: DictionaryInfo = field(default_factory=DictionaryInfo)
    id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("id", "name", "write_only", "items", "info")

    def to_dict(self) -> dict[str, Any]:
        result = dict(self.extra)
        if self.id is not None:
            result["id"] = self.id
        result["name"] = self.name
        result["write_only"] = self.write_only
        result["items"] = [item.to_dict() for item in self.items]
        info = self.info.to_dict()
        if info:
            result["info"] = info
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Dictionary:
        return cls(
            id=data.get("id"),
            name=str(data["name"]),
            write_only=bool(data.get("write_only", False)),
            items=[DictionaryItem.from_dict(i) for i in data.get("items") or []],
            info=DictionaryInfo.from_dict(data.get("info")),
            extra=_split_known(data, cls._KNOWN),
        )


@dataclass
class Snippet:
    """A piece of VCL attached to an execution point (``type``)."""

    name: str
    type: str
    priority: int = 100
    content: str = ""
    id: str | None = None
    dynamic: str = "0"
    extra: dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("id", "name", "type", "priority", "content", "dynamic")

    def to_dict(self) -> dict[str, Any]:
        result = dict(self.extra)
        if self.id is not None:
            result["id"] = self.id
        result.update(
            name=self.name,
            type=self.type,
            priority=str(self.priority),
            content=self.content,
            dynamic=self.dynamic,
        )
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Snippet:
        return cls(
            id=data.get("id"),
            name=str(data["name"]),
            type=str(data.get("type", "none")),
            priority=_parse_priority(data.get("priority")),
            content=data.get("content") or "",
            dynamic=str(data.get("dynamic", "0")),
            extra=_split_known(data, cls._KNOWN),
        )


@dataclass
class RawFile:
    """A complete VCL source file; ``main`` marks the entry point."""

    name: str
    content: str = ""
    main: bool = False
    extra: dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("name", "content", "main")

    def to_dict(self) -> dict[str, Any]:
        result = dict(self.extra)
        result.update(name=self.name, content=self.content, main=self.main)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawFile:
        return cls(
            name=str(data["name"]),
            content=data.get("content") or "",
            main=bool(data.get("main", False)),
            extra=_split_known(data, cls._KNOWN),
        )


@dataclass
class AclEntry:
    ip: str
    subnet: int | None = None
    negated: bool | str = False
    comment: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("ip", "subnet", "negated", "comment")

    def to_dict(self) -> dict[str, Any]:
        result = dict(self.extra)
        result.update(ip=self.ip, subnet=self.subnet, negated=self.negated, comment=self.comment)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AclEntry:
        return cls(
            ip=str(data.get("ip", "")),
            subnet=data.get("subnet"),
            negated=data.get("negated", False),
            comment=data.get("comment") or "",
            extra=_split_known(data, cls._KNOWN),
        )


@dataclass
class Acl:
    name: str
    entries: list[AclEntry] = field(default_factory=list)
    id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("id", "name", "entries")

    def to_dict(self) -> dict[str, Any]:
        result = dict(self.extra)
        if self.id is not None:
            result["id"] = self.id
        result["name"] = self.name
        result["entries"] = [entry.to_dict() for entry in self.entries]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Acl:
        return cls(
            id=data.get("id"),
            name=str(data["name"]),
            entries=[AclEntry.from_dict(e) for e in data.get("entries") or []],
            extra=_split_known(data, cls._KNOWN),
        )


@dataclass
class Domain:
    name: str
    comment: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "comment": self.comment}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Domain:
        return cls(name=str(data["name"]), comment=data.get("comment") or "")


@dataclass
class Secret:
    """A detected secret. Never stored in the service model itself."""

    context_label: str
    value: str
    detector_type: str
    variable_name: str


@dataclass
class ServiceConfig:
    """
    One version of one service.

    Fields the remote store returns that are not modelled here end up in
    ``extra``; non-empty containers among them are reported by
    ``unsupported_features()`` instead of being silently dropped.
    """

    service_id: str | None = None
    version: int | None = None
    name: str | None = None
    type: str | None = None
    comment: str | None = None
    domains: list[Domain] = field(default_factory=list)
    conditions: list[dict[str, Any]] = field(default_factory=list)
    headers: list[dict[str, Any]] = field(default_factory=list)
    backends: list[dict[str, Any]] = field(default_factory=list)
    acls: list[Acl] = field(default_factory=list)
    dictionaries: list[Dictionary] = field(default_factory=list)
    snippets: list[Snippet] = field(default_factory=list)
    vcls: list[RawFile] = field(default_factory=list)
    request_settings: list[dict[str, Any]] = field(default_factory=list)
    settings: dict[str, Any] = field(default_factory=dict)
    io_settings: list[dict[str, Any]] = field(default_factory=list)
    environments: list[dict[str, Any]] = field(default_factory=list)
    products: dict[str, Any] = field(default_factory=dict)
    logging_endpoints: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    _SCALARS = ("service_id", "version", "name", "type", "comment")
    _PLAIN_LISTS = ("conditions", "headers", "backends", "request_settings", "io_settings", "environments")
    _PLAIN_MAPS = ("settings", "products")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServiceConfig:
        """Build a service from its JSON form (service.json or a fetch response)."""
        service = cls()
        version = data.get("version")
        if isinstance(version, str) and version.isdigit():
            version = int(version)
        service.service_id = data.get("service_id")
        service.version = version
        service.name = data.get("name")
        service.type = data.get("type")
        service.comment = data.get("comment")

        for key in cls._PLAIN_LISTS:
            setattr(service, key, list(data.get(key) or []))
        for key in cls._PLAIN_MAPS:
            setattr(service, key, dict(data.get(key) or {}))

        service.domains = [
            Domain(name=d) if isinstance(d, str) else Domain.from_dict(d) for d in data.get("domains") or []
        ]
        service.acls = [Acl.from_dict(a) for a in data.get("acls") or []]
        service.dictionaries = [Dictionary.from_dict(d) for d in data.get("dictionaries") or []]
        service.snippets = [Snippet.from_dict(s) for s in data.get("snippets") or []]
        service.vcls = [RawFile.from_dict(v) for v in data.get("vcls") or []]
        service.logging_endpoints = {t: list(data[t]) for t in LOG_TYPES if data.get(t)}

        handled = (*cls._SCALARS, *cls._PLAIN_LISTS, *cls._PLAIN_MAPS, *RESOURCE_KEYS, *LOG_TYPES)
        service.extra = _split_known(data, handled)
        return service

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = dict(self.extra)
        for key in self._SCALARS:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        for key in (*self._PLAIN_LISTS, *self._PLAIN_MAPS):
            result[key] = getattr(self, key)
        result["domains"] = [d.to_dict() for d in self.domains]
        result["acls"] = [a.to_dict() for a in self.acls]
        result["dictionaries"] = [d.to_dict() for d in self.dictionaries]
        result["snippets"] = [s.to_dict() for s in self.snippets]
        result["vcls"] = [v.to_dict() for v in self.vcls]
        for log_type, endpoints in self.logging_endpoints.items():
            result[log_type] = endpoints
        return result

    def without_resources(self) -> dict[str, Any]:
        """JSON form minus the collections that have their own files."""
        data = self.to_dict()
        for key in RESOURCE_KEYS:
            data.pop(key, None)
        return data

    def copy(self) -> ServiceConfig:
        return copy.deepcopy(self)

    def unsupported_features(self) -> list[str]:
        """Names of non-empty object/array fields that edgecfg does not handle."""
        unsupported = []
        for key, value in self.extra.items():
            if isinstance(value, (list, dict)) and len(value) > 0 and key not in SUPPORTED_FEATURES:
                unsupported.append(key)
        return unsupported

    def snippets_by_execution_point(self) -> dict[str, list[Snippet]]:
        """Snippets grouped by execution point, each group stably sorted by priority."""
        groups: dict[str, list[Snippet]] = {}
        for snippet in self.snippets:
            groups.setdefault(snippet.type, []).append(snippet)
        return {point: sorted(group, key=lambda s: s.priority) for point, group in groups.items()}
