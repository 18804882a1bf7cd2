"""Command-line interface for edgecfg.

Keeps the configuration of an edge service in version control as a set of
human-editable files.

Commands:
    import  Write a working copy from an assembled service JSON dump
    check   Scan a working copy for secrets
    redact  Replace secrets in a working copy with ${{VAR}} expressions
    show    Summarize a working copy

Configuration:
    Supports config files: edgecfg.toml, .edgecfg.yml, etc.
    CLI flags override config file values.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import DEFAULT_ENV, SecretsMode
from .config_loader import ProjectConfig, SyncSettings, load_config, merge_cli_with_config
from .errors import ConfigError, FatalUserError
from .fetcher import load_service_json
from .redactor import redact as redact_service
from .redactor import report_secrets
from .reporting import Reporter
from .scanner import create_scanner
from .store import LocalStore

# Initialize CLI app
app = typer.Typer(
    name="edgecfg",
    help="""Keep edge service configuration in version control.

Writes a service as service.json, acl.json, domains.yaml, vcl/, snippets/ and
dictionaries/ and reads it back, detecting and redacting secrets on the way.

Examples:
    edgecfg import service-dump.json
    edgecfg check --env staging
    edgecfg redact
    edgecfg show
""",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"edgecfg version {__version__}")
        raise typer.Exit()


def _settings(
    path: Path,
    config_file: Path | None,
    verbose: bool,
    secrets_mode: SecretsMode | None = None,
) -> tuple[SyncSettings, Reporter]:
    project_config: ProjectConfig = load_config(path, config_file)
    settings = merge_cli_with_config(project_config, secrets_mode=secrets_mode, verbose=verbose)
    reporter = Reporter(console=console, verbose=settings.verbose)
    if project_config._config_file is not None:
        reporter.debug(f"Using config: {project_config._config_file.name}")
    return settings, reporter


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """edgecfg - edge service configuration as code."""


@app.command("import")
def import_service(
    file: Path = typer.Argument(..., help="Assembled service JSON to import.", exists=True, dir_okay=False),
    path: Path = typer.Option(Path("."), "--path", "-p", help="Working directory.", file_okay=False),
    env: str = typer.Option(DEFAULT_ENV, "--env", "-e", help="Environment the service belongs to."),
    secrets_mode: SecretsMode | None = typer.Option(
        None, "--secrets-mode", "-s", help="What to do with detected secrets: warn or replace."
    ),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="Path to config file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed output."),
) -> None:
    """
    Write a working copy from a service JSON dump.

    Examples:
        edgecfg import service-dump.json
        edgecfg import dump.json --env staging --secrets-mode replace
    """
    try:
        settings, reporter = _settings(path, config_file, verbose, secrets_mode)
        service = load_service_json(file)
        LocalStore(path, settings, reporter).write(service, env)
        console.print()
        console.print(f"[bold green]✓ Service written to {path.resolve()}[/bold green]")
    except (FatalUserError, ConfigError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None


@app.command()
def check(
    path: Path = typer.Option(Path("."), "--path", "-p", help="Working directory.", file_okay=False),
    env: str = typer.Option(DEFAULT_ENV, "--env", "-e", help="Environment to read."),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="Path to config file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed output."),
) -> None:
    """
    Scan a working copy for secrets.

    Variables are not expanded, so already redacted values are not reported.
    Findings are warnings and do not change the exit code.
    """
    try:
        settings, reporter = _settings(path, config_file, verbose)
        service = LocalStore(path, settings, reporter).read(env, expand=False)
        secrets = redact_service(service, SecretsMode.WARN, create_scanner(settings.secrets))
        report_secrets(secrets, reporter, SecretsMode.WARN)
        if not secrets:
            console.print("[bold green]✓ No secrets found[/bold green]")
    except (FatalUserError, ConfigError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None


@app.command()
def redact(
    path: Path = typer.Option(Path("."), "--path", "-p", help="Working directory.", file_okay=False),
    env: str = typer.Option(DEFAULT_ENV, "--env", "-e", help="Environment to read and write."),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="Path to config file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed output."),
) -> None:
    """
    Replace secrets in a working copy with ${{VAR}} expressions.

    The original values are added to .secrets.env.
    """
    try:
        settings, reporter = _settings(path, config_file, verbose, SecretsMode.REPLACE)
        store = LocalStore(path, settings, reporter)
        service = store.read(env, expand=False)
        secrets = store.write(service, env)
        console.print()
        console.print(f"[bold green]✓ {len(secrets)} secret(s) redacted[/bold green]")
    except (FatalUserError, ConfigError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None


@app.command()
def show(
    path: Path = typer.Option(Path("."), "--path", "-p", help="Working directory.", file_okay=False),
    env: str = typer.Option(DEFAULT_ENV, "--env", "-e", help="Environment to read."),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="Path to config file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed output."),
) -> None:
    """Summarize the working copy."""
    try:
        settings, reporter = _settings(path, config_file, verbose)
        service = LocalStore(path, settings, reporter).read(env, expand=False)
    except (FatalUserError, ConfigError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1) from None

    console.print(
        f"\n[bold]Service: {escape(service.name or '?')}[/bold] "
        f"({escape(service.service_id or 'no id')}, version {service.version})\n"
    )

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Resource")
    table.add_column("Count", justify="right")
    table.add_column("Details")

    table.add_row("Domains", str(len(service.domains)), ", ".join(d.name for d in service.domains))
    table.add_row("Backends", str(len(service.backends)), ", ".join(str(b.get("name")) for b in service.backends))
    table.add_row("ACLs", str(len(service.acls)), ", ".join(a.name for a in service.acls))
    table.add_row(
        "Dictionaries",
        str(len(service.dictionaries)),
        ", ".join(f"{d.name} (write-only)" if d.write_only else d.name for d in service.dictionaries),
    )
    for execution_point, snippets in service.snippets_by_execution_point().items():
        table.add_row(f"Snippets ({execution_point})", str(len(snippets)), ", ".join(s.name for s in snippets))
    table.add_row(
        "VCL files",
        str(len(service.vcls)),
        ", ".join(f"{v.name} (main)" if v.main else v.name for v in service.vcls),
    )
    for log_type, endpoints in service.logging_endpoints.items():
        table.add_row(f"Logging ({log_type})", str(len(endpoints)), ", ".join(str(e.get("name")) for e in endpoints))

    console.print(table)


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
