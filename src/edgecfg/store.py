"""
Local configuration store.

Writes a service model to a working directory as a set of files meant for
version control, and reads it back:

    service.json          everything not stored elsewhere (written last)
    acl.json              ACLs
    domains.yaml          domains per environment
    vcl/*.vcl             raw VCL files
    snippets/*.vcl        snippets, one file per execution point
    dictionaries/*.ini    dictionaries

Files are only touched when their content changes, each write is atomic,
and files of a resource directory that no longer correspond to a resource
are removed.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path

from .acls import decode_acls, encode_acls
from .config import (
    DEFAULT_ENV,
    DICTIONARY_EXT,
    DIR_DICTIONARIES,
    DIR_SNIPPETS,
    DIR_VCLS,
    FILE_ACL,
    FILE_DOMAINS,
    FILE_SECRETS_ENV,
    FILE_SERVICE,
    JSON_INDENT,
    SOURCE_EXT,
    SecretsMode,
)
from .config_loader import SyncSettings
from .dictionaries import decode_dictionaries, encode_dictionaries
from .domains import decode_domains, encode_domains, rename_legacy_domains
from .errors import FatalUserError
from .model import Secret, ServiceConfig
from .redactor import check_gitignored, read_secrets_env, redact, report_secrets, write_secrets_env
from .reporting import Reporter
from .scanner import create_scanner
from .snippets import decode_snippets, encode_snippets
from .utils import atomic_write_text, read_file_safe, to_sorted_json
from .variables import expand as expand_variables
from .vcls import decode_vcls, encode_vcls


def _read_text(path: Path) -> str | None:
    if not path.is_file():
        return None
    content, _ = read_file_safe(path)
    return content


def write_if_changed(path: Path, content: str | None) -> bool:
    """
    Bring path in line with content; None means the file must not exist.

    Returns:
        True if the file was written or deleted
    """
    if content is None:
        if path.exists():
            path.unlink()
            return True
        return False
    if _read_text(path) == content:
        return False
    atomic_write_text(path, content)
    return True


def read_directory(directory: Path, pattern: str) -> dict[str, str]:
    """Contents of the files in directory matching pattern, by file name."""
    if not directory.is_dir():
        return {}
    files = {}
    for path in sorted(directory.glob(pattern)):
        if path.is_file():
            content, _ = read_file_safe(path)
            files[path.name] = content
    return files


def sync_directory(directory: Path, pattern: str, files: dict[str, str], reporter: Reporter | None = None) -> None:
    """
    Make the files matching pattern in directory equal to files.

    Unchanged files are left alone, changed and new ones are written
    atomically, and matching files not in ``files`` are deleted. Files not
    matching pattern are never touched.
    """
    stale = set(read_directory(directory, pattern)) - set(files)

    for name, content in files.items():
        if write_if_changed(directory / name, content) and reporter is not None:
            reporter.debug(f"  written {directory.name}/{name}")

    for name in sorted(stale):
        (directory / name).unlink()
        if reporter is not None:
            reporter.debug(f"  removed {directory.name}/{name}")

    if directory.is_dir() and not any(directory.iterdir()):
        directory.rmdir()


class LocalStore:
    """
    Working copy of one service in a directory.

    Args:
        root: Working directory
        settings: Effective settings (secrets handling, environments)
        reporter: Receives progress and warnings
    """

    def __init__(
        self,
        root: Path,
        settings: SyncSettings | None = None,
        reporter: Reporter | None = None,
    ):
        self.root = Path(root)
        self.settings = settings or SyncSettings()
        self.reporter = reporter or Reporter()

    def _redact(self, service: ServiceConfig) -> list[Secret]:
        secrets_config = self.settings.secrets
        if not secrets_config.enabled:
            return []

        secrets_env = self.root / FILE_SECRETS_ENV
        known = read_secrets_env(secrets_env)
        secrets = redact(service, secrets_config.mode, create_scanner(secrets_config), known)
        report_secrets(secrets, self.reporter, secrets_config.mode)

        if secrets and secrets_config.mode == SecretsMode.REPLACE:
            write_secrets_env(secrets_env, secrets)
            self.reporter.debug(f"- Secrets {FILE_SECRETS_ENV} ({len(secrets)})")
            check_gitignored(self.root, FILE_SECRETS_ENV, self.reporter)
        return secrets

    def write(self, service: ServiceConfig, env: str = DEFAULT_ENV) -> list[Secret]:
        """
        Write service to the working directory.

        The caller's service object is not modified; redaction works on a copy.

        Returns:
            Secrets detected (and in replace mode, replaced) while writing
        """
        service = service.copy()
        secrets = self._redact(service)

        self.reporter.debug(f"Writing service to {self.root}")

        if write_if_changed(self.root / FILE_ACL, encode_acls(service.acls)):
            self.reporter.debug(f"- ACLs {FILE_ACL}")

        sync_directory(
            self.root / DIR_SNIPPETS, f"*{SOURCE_EXT}", encode_snippets(service, self.reporter), self.reporter
        )
        sync_directory(
            self.root / DIR_VCLS, f"*{SOURCE_EXT}", encode_vcls(service.vcls, self.reporter), self.reporter
        )

        dictionaries_dir = self.root / DIR_DICTIONARIES
        pattern = f"*{DICTIONARY_EXT}"
        dictionary_files = encode_dictionaries(
            service.dictionaries, read_directory(dictionaries_dir, pattern), self.reporter
        )
        sync_directory(dictionaries_dir, pattern, dictionary_files, self.reporter)

        domains_path = self.root / FILE_DOMAINS
        legacy = {name: env_config.domains for name, env_config in self.settings.env.items()}
        write_if_changed(
            domains_path,
            encode_domains(service.domains, env, _read_text(domains_path), legacy, self.reporter),
        )
        self.reporter.debug(f"- Domains {FILE_DOMAINS} ({env})")

        # last, so an interrupted write leaves the previous canonical document
        write_if_changed(self.root / FILE_SERVICE, to_sorted_json(service.without_resources(), indent=JSON_INDENT))
        self.reporter.debug(f"- Service {FILE_SERVICE}")

        return secrets

    def read(
        self,
        env: str = DEFAULT_ENV,
        expand: bool = True,
        environ: Mapping[str, str] | None = None,
    ) -> ServiceConfig:
        """
        Read the service from the working directory.

        Args:
            env: Environment whose domains are used
            expand: Resolve ``${{VAR}}`` expressions from the environment
            environ: Variables to resolve against (default: os.environ)

        Raises:
            FatalUserError: If there is no service.json or a file is invalid
        """
        service_text = _read_text(self.root / FILE_SERVICE)
        if service_text is None:
            raise FatalUserError(f"No {FILE_SERVICE} found in {self.root}")
        try:
            data = json.loads(service_text)
        except json.JSONDecodeError as e:
            raise FatalUserError(f"Invalid JSON in {FILE_SERVICE}: {e}") from e
        if not isinstance(data, dict):
            raise FatalUserError(f"{FILE_SERVICE} must contain a JSON object")

        service = ServiceConfig.from_dict(data)
        self.reporter.debug(f"Reading service from {self.root}")

        unsupported = service.unsupported_features()
        if unsupported:
            self.reporter.warn(
                f"{FILE_SERVICE} contains features edgecfg does not support, they are passed through as is: "
                + ", ".join(unsupported)
            )

        service.acls = decode_acls(_read_text(self.root / FILE_ACL))
        service.snippets = decode_snippets(
            read_directory(self.root / DIR_SNIPPETS, f"*{SOURCE_EXT}"), self.reporter
        )
        service.vcls = decode_vcls(read_directory(self.root / DIR_VCLS, f"*{SOURCE_EXT}"), self.reporter)
        service.dictionaries = decode_dictionaries(
            read_directory(self.root / DIR_DICTIONARIES, f"*{DICTIONARY_EXT}"), self.reporter
        )

        domains_text = _read_text(self.root / FILE_DOMAINS)
        if domains_text is not None:
            service.domains = decode_domains(domains_text, env)
            self.reporter.debug(f"- Domains {FILE_DOMAINS} ({env})")
        else:
            service.domains = rename_legacy_domains(
                service.domains, env, self.settings.domain_map(env), self.reporter
            )

        if expand:
            service = expand_variables(service, environ, self.reporter)

        return service


def write_service(
    root: Path,
    service: ServiceConfig,
    env: str = DEFAULT_ENV,
    settings: SyncSettings | None = None,
    reporter: Reporter | None = None,
) -> list[Secret]:
    """Write service to the working directory root."""
    return LocalStore(root, settings, reporter).write(service, env)


def read_service(
    root: Path,
    env: str = DEFAULT_ENV,
    settings: SyncSettings | None = None,
    reporter: Reporter | None = None,
    expand: bool = True,
) -> ServiceConfig:
    """Read the service from the working directory root."""
    return LocalStore(root, settings, reporter).read(env, expand=expand)
