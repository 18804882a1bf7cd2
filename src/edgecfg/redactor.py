"""
Secret redaction for edgecfg.

Walks a service model and runs the secret scanner over every field that may
carry a credential:

- dictionary item keys and values
- raw VCL file contents
- snippet contents
- the credential field of each logging endpoint

In ``warn`` mode the hits are only returned for reporting. In ``replace``
mode each hit is substituted in place by a variable expression
``${{NAME}}`` and the original value is returned so it can be exported to
``.secrets.env``. Running replace mode again over an already redacted
service finds nothing new: hits that are variable expressions are dropped
and logging credentials that already hold one are skipped.

Names already in use are never handed out for a different value: those
recorded in ``.secrets.env`` keep their value, and names referenced by
expressions in the service but unknown otherwise are reserved.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from pathlib import Path

import pathspec
from pathspec.patterns import GitWildMatchPattern

from .config import LOG_TYPES, SecretsMode
from .model import Secret, ServiceConfig
from .reporting import Reporter
from .scanner import Hit, SecretScanner
from .utils import atomic_write_text, read_file_safe, truncate_string
from .variables import find_variables, is_variable_expression, variable_expression

_NON_ALNUM = re.compile(r"[^A-Z0-9]+")

# One "NAME=value" line of a .secrets.env file
_ENV_LINE = re.compile(r'^([A-Z0-9_]+)="(.*)"$')


def variable_name(*parts: str) -> str:
    """Build an environment variable name from context parts, e.g. DICT_CFG_API_KEY."""
    cleaned = [_NON_ALNUM.sub("_", part.upper()).strip("_") for part in parts]
    return "_".join(p for p in cleaned if p) or "SECRET"


class Redactor:
    """
    Detects and optionally replaces secrets in a service model.

    One instance handles one redaction run: variable names are unique
    within the run and never collide with the known variables passed in
    (typically the content of an existing .secrets.env).
    """

    def __init__(
        self,
        scanner: SecretScanner,
        mode: SecretsMode = SecretsMode.WARN,
        known: Mapping[str, str] | None = None,
    ):
        self.scanner = scanner
        self.mode = SecretsMode(mode)
        self.ignore_keys = scanner.config.ignore_keys
        # name -> value; None marks a name in use whose value is unknown
        self._names: dict[str, str | None] = dict(known or {})

    def _reserve(self, service: ServiceConfig) -> None:
        """Reserve every variable name the service already references."""
        for name in find_variables(json.dumps(service.to_dict())):
            self._names.setdefault(name, None)

    def _allocate_name(self, base: str, value: str) -> str:
        """Return base, base_2, base_3... whichever is free or already holds value."""
        index = 1
        while True:
            name = base if index == 1 else f"{base}_{index}"
            if self._names.get(name, value) == value:
                self._names[name] = value
                return name
            index += 1

    def _hits(self, text: str) -> list[Hit]:
        seen: set[str] = set()
        hits = []
        for hit in self.scanner.scan(text):
            if hit.secret in seen or is_variable_expression(hit.secret):
                continue
            seen.add(hit.secret)
            hits.append(hit)
        return hits

    def _process(self, text: str, label: str, name_parts: tuple[str, ...]) -> tuple[str, list[Secret]]:
        """Scan one field. Returns the (possibly rewritten) text and its secrets."""
        secrets = []
        base = variable_name(*name_parts)
        for hit in self._hits(text):
            name = self._allocate_name(base, hit.secret)
            secrets.append(
                Secret(
                    context_label=label,
                    value=hit.secret,
                    detector_type=hit.detector_type,
                    variable_name=name,
                )
            )
            if self.mode == SecretsMode.REPLACE:
                text = text.replace(hit.secret, variable_expression(name))
        return text, secrets

    def _redact_dictionaries(self, service: ServiceConfig) -> list[Secret]:
        secrets = []
        for dictionary in service.dictionaries:
            for position, item in enumerate(dictionary.items, start=1):
                if item.key in self.ignore_keys:
                    continue

                # keys can hold secrets too, e.g. when used as a lookup table
                key, key_secrets = self._process(
                    item.key,
                    f"dictionary '{dictionary.name}' key '{item.key}'",
                    ("DICT", dictionary.name, "KEY"),
                )
                field_name = item.key if not key_secrets else f"ITEM_{position}"
                value, value_secrets = self._process(
                    item.value,
                    f"dictionary '{dictionary.name}' item '{item.key}'",
                    ("DICT", dictionary.name, field_name),
                )
                item.key, item.value = key, value
                secrets.extend(key_secrets)
                secrets.extend(value_secrets)
        return secrets

    def _redact_vcls(self, service: ServiceConfig) -> list[Secret]:
        secrets = []
        for vcl in service.vcls:
            stem = vcl.name[: -len(".vcl")] if vcl.name.endswith(".vcl") else vcl.name
            vcl.content, found = self._process(vcl.content, f"VCL '{vcl.name}'", ("VCL", stem))
            secrets.extend(found)
        return secrets

    def _redact_snippets(self, service: ServiceConfig) -> list[Secret]:
        secrets = []
        for snippet in service.snippets:
            snippet.content, found = self._process(
                snippet.content, f"snippet '{snippet.name}'", ("SNIPPET", snippet.name)
            )
            secrets.extend(found)
        return secrets

    def _redact_logging(self, service: ServiceConfig) -> list[Secret]:
        secrets = []
        for log_type, endpoints in service.logging_endpoints.items():
            credential = LOG_TYPES.get(log_type, {}).get("credential")
            if not credential:
                continue
            for endpoint in endpoints:
                value = endpoint.get(credential)
                if not isinstance(value, str) or not value or is_variable_expression(value):
                    continue
                name = str(endpoint.get("name", log_type))
                endpoint[credential], found = self._process(
                    value,
                    f"logging endpoint {log_type} '{name}' field '{credential}'",
                    ("LOG", log_type, name, credential),
                )
                secrets.extend(found)
        return secrets

    def redact(self, service: ServiceConfig) -> list[Secret]:
        """Scan the service; in replace mode rewrite it in place."""
        self._reserve(service)
        secrets = []
        secrets.extend(self._redact_dictionaries(service))
        secrets.extend(self._redact_vcls(service))
        secrets.extend(self._redact_snippets(service))
        secrets.extend(self._redact_logging(service))
        return secrets


def redact(
    service: ServiceConfig,
    mode: SecretsMode | str,
    scanner: SecretScanner,
    known: Mapping[str, str] | None = None,
) -> list[Secret]:
    """
    Detect secrets in service; replace them with variables when mode is replace.

    known maps variable names already in use to their values. A known name is
    reused only for the same value.
    """
    return Redactor(scanner, SecretsMode(mode), known).redact(service)


def report_secrets(secrets: list[Secret], reporter: Reporter, mode: SecretsMode = SecretsMode.WARN) -> None:
    """Print detected secrets grouped by where they were found."""
    if not secrets:
        return

    by_context: dict[str, list[Secret]] = {}
    for secret in secrets:
        by_context.setdefault(secret.context_label, []).append(secret)

    for label, found in by_context.items():
        lines = [f"Possible secrets found in {label}:"]
        for secret in found:
            line = f"- {truncate_string(secret.value, 40)} ({secret.detector_type})"
            if mode == SecretsMode.REPLACE:
                line += f" -> {variable_expression(secret.variable_name)}"
            lines.append(line)
        reporter.warn("\n".join(lines))

    if mode == SecretsMode.REPLACE:
        reporter.info("Secrets were replaced by variables, original values are in .secrets.env.")
        reporter.info("Provide them as environment variables when pushing the configuration.")
    else:
        reporter.info("Please review the secrets above BEFORE committing to version control.")
        reporter.info("Actions:")
        reporter.info("  SECRET: move it to a write-only dictionary, or rerun with secrets mode 'replace'.")
        reporter.info("  NOPE: ignore it via secrets.ignore_keys or secrets.ignore_values in the config.")


def _escape_env_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _unescape_env_value(value: str) -> str:
    result = []
    chars = iter(value)
    for char in chars:
        if char == "\\":
            nxt = next(chars, "")
            result.append("\n" if nxt == "n" else nxt)
        else:
            result.append(char)
    return "".join(result)


def read_secrets_env(path: Path) -> dict[str, str]:
    """Read a .secrets.env file into a name -> value map."""
    if not path.exists():
        return {}
    content, _ = read_file_safe(path)
    result = {}
    for line in content.splitlines():
        match = _ENV_LINE.match(line.strip())
        if match:
            result[match.group(1)] = _unescape_env_value(match.group(2))
    return result


def write_secrets_env(path: Path, secrets: list[Secret]) -> None:
    """
    Add secrets to a .secrets.env file, one NAME="value" per line.

    Existing entries are kept unless a new secret uses the same name.
    Newlines, quotes and backslashes in values are backslash-escaped.
    """
    values = read_secrets_env(path)
    for secret in secrets:
        values[secret.variable_name] = secret.value
    lines = [f'{name}="{_escape_env_value(value)}"' for name, value in sorted(values.items())]
    atomic_write_text(path, "\n".join(lines) + "\n")


def check_gitignored(root: Path, filename: str, reporter: Reporter) -> bool:
    """Warn if filename is not excluded by the .gitignore in root."""
    gitignore = root / ".gitignore"
    lines: list[str] = []
    if gitignore.exists():
        content, _ = read_file_safe(gitignore)
        lines = content.splitlines()

    spec = pathspec.PathSpec.from_lines(GitWildMatchPattern, lines)
    if spec.match_file(filename):
        return True

    reporter.warn(f"{filename} contains secrets but is not listed in .gitignore. Never commit this file.")
    return False
