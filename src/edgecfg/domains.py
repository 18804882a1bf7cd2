"""
Domain codec: ``domains.yaml``.

Domains differ between environments, so ``domains.yaml`` maps each
environment name to its list of domains. An entry is the bare domain name,
or a ``{name, comment}`` mapping when there is a comment.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

import yaml

from .config import DEFAULT_ENV, FILE_DOMAINS
from .errors import FatalUserError
from .model import Domain
from .reporting import Reporter


def _load_document(text: str | None) -> dict[str, Any]:
    if text is None or not text.strip():
        return {}
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise FatalUserError(f"Invalid YAML in {FILE_DOMAINS}: {e}") from e
    if doc is None:
        return {}
    if not isinstance(doc, dict):
        raise FatalUserError(f"{FILE_DOMAINS} must be a mapping of environment names to domain lists")
    return doc


def _entries(domains: list[Domain]) -> list[Any]:
    entries: list[Any] = []
    for domain in domains:
        if domain.comment:
            entries.append({"name": domain.name, "comment": domain.comment})
        else:
            entries.append(domain.name)
    return entries


def encode_domains(
    domains: list[Domain],
    env: str = DEFAULT_ENV,
    existing: str | None = None,
    legacy: Mapping[str, Mapping[str, str]] | None = None,
    reporter: Reporter | None = None,
) -> str:
    """
    Render domains.yaml with the domains of env.

    Other environments found in the existing file content are kept. When
    production is written, environments that only have a legacy mapping
    (``env.<env>.domains`` in the project config) and no entry yet are moved
    into the file, so they keep working once domains.yaml exists.

    The existing content is returned untouched when no entry changes.
    Otherwise the document is dumped anew and comments are not preserved.
    """
    doc = _load_document(existing)
    original = copy.deepcopy(doc)

    doc[env] = _entries(domains)

    if env == DEFAULT_ENV and legacy:
        for other_env, domain_map in legacy.items():
            if other_env == DEFAULT_ENV or other_env in doc or not domain_map:
                continue
            doc[other_env] = [str(name) for name in domain_map.values()]
            if reporter:
                reporter.warn(
                    f"Moved the env.{other_env}.domains mapping from the configuration to {FILE_DOMAINS}. "
                    f"The mapping in the configuration is no longer used and can be removed."
                )

    if existing is not None and doc == original:
        return existing
    return yaml.safe_dump(doc, sort_keys=False, default_flow_style=False, allow_unicode=True)



def decode_domains(text: str, env: str = DEFAULT_ENV) -> list[Domain]:
    """Parse the domains of env from domains.yaml content."""
    doc = _load_document(text)

    entries = doc.get(env)
    if not isinstance(entries, list):
        raise FatalUserError(f"'{env}' in {FILE_DOMAINS} is not a list")

    domains = []
    for index, entry in enumerate(entries):
        if isinstance(entry, str):
            domains.append(Domain(name=entry))
        elif isinstance(entry, dict) and entry.get("name"):
            domains.append(Domain(name=str(entry["name"]), comment=str(entry.get("comment") or "")))
        else:
            raise FatalUserError(f"'{env}[{index}]' in {FILE_DOMAINS} is not a string or object: {entry!r}")
    return domains


def rename_legacy_domains(
    domains: list[Domain],
    env: str,
    domain_map: Mapping[str, str] | None,
    reporter: Reporter,
) -> list[Domain]:
    """
    Map production domains to the domains of env.

    Used for working copies without domains.yaml, where service.json holds the
    production domains and the project config maps each of them to the
    domain of the other environment (``env.<env>.domains``).

    Raises:
        FatalUserError: If any domain has no mapping
    """
    if env == DEFAULT_ENV:
        return domains

    reporter.warn(
        f"No {FILE_DOMAINS} found, using the env.{env}.domains mapping from the configuration. "
        f"Writing the production service will create {FILE_DOMAINS} and move the mapping into it."
    )

    domain_map = domain_map or {}
    renamed = []
    unmapped = []
    for domain in domains:
        new_name = domain_map.get(domain.name)
        if new_name and new_name != domain.name:
            reporter.debug(f"- {domain.name} -> {new_name}")
            renamed.append(Domain(name=str(new_name), comment=domain.comment))
        else:
            unmapped.append(domain.name)

    if unmapped:
        raise FatalUserError(
            f"The following domains are not mapped in env.{env}.domains in the configuration: "
            + ", ".join(unmapped)
        )
    return renamed
