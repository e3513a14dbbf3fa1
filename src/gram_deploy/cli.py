from __future__ import annotations

import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import httpx
import typer
from rich.console import Console
from rich.table import Table

from gram_deploy.client import ClientError, DeploymentsClient
from gram_deploy.config import DEFAULT_MANIFEST_NAME, ConfigError, load_settings
from gram_deploy.credentials import CredentialError, CredentialProvider, validate_api_key
from gram_deploy.files import FileError
from gram_deploy.keychain import KeychainError, forget_api_key, store_api_key
from gram_deploy.logs import setup_logging
from gram_deploy.manifest import ManifestError, example_manifest, load_manifest, write_manifest
from gram_deploy.service import (
    DeploymentService,
    ServiceError,
    check_sources,
    new_idempotency_key,
)

app = typer.Typer(help="Gram Deploy: validate a deployment manifest and submit it to Gram")
console = Console()

FILE_OPTION_HELP = "Path to the deployment manifest (JSON or YAML)"


def _fail(exc: Exception) -> typer.Exit:
    console.print(str(exc), style="red", markup=False, highlight=False)
    return typer.Exit(code=1)


@contextmanager
def _cancel_on_interrupt() -> Iterator[threading.Event]:
    """Turn Ctrl-C into a cancellation of the in-flight deployment request."""
    cancel = threading.Event()
    if threading.current_thread() is not threading.main_thread():
        yield cancel
        return

    previous = signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())
    try:
        yield cancel
    finally:
        signal.signal(signal.SIGINT, previous)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show progress logs"),
    debug: bool = typer.Option(False, "--debug", help="Dump redacted HTTP exchanges"),
) -> None:
    setup_logging(console, verbose=verbose, debug=debug)


@app.command("deploy")
def deploy(
    file: Path = typer.Option(Path(DEFAULT_MANIFEST_NAME), "--file", "-f", help=FILE_OPTION_HELP),
    idempotency_key: str | None = typer.Option(
        None,
        "--idempotency-key",
        help="Reuse the key of a failed attempt to retry it without creating a duplicate",
    ),
) -> None:
    """Create a deployment from every source in the manifest."""
    try:
        settings = load_settings()
        credentials = CredentialProvider(settings)
        api_key = credentials.credential()
        project = credentials.project_scope()

        manifest = load_manifest(file)
        console.print(f"Loaded manifest {file} with {len(manifest.sources)} source(s)")

        key = idempotency_key or new_idempotency_key()
        console.print(f"Idempotency key: {key}")

        with DeploymentsClient(settings) as client, _cancel_on_interrupt() as cancel:
            result = DeploymentService(client).create_deployment(
                manifest, api_key, project, key, cancel=cancel
            )
    except (
        ConfigError,
        CredentialError,
        KeychainError,
        FileError,
        ManifestError,
        ServiceError,
        ClientError,
        httpx.HTTPError,
    ) as exc:
        raise _fail(exc) from exc

    console.print(f"[green]Deployment created:[/green] {result.id}")
    if result.status:
        console.print(f"Status: {result.status}")
    for asset in result.openapiv3_assets:
        console.print(f"  - {asset.name or asset.id}")


@app.command("validate")
def validate(
    file: Path = typer.Option(Path(DEFAULT_MANIFEST_NAME), "--file", "-f", help=FILE_OPTION_HELP),
) -> None:
    """Check the manifest and read every source without contacting Gram."""
    try:
        manifest = load_manifest(file)
        summaries = check_sources(manifest)
    except (FileError, ManifestError, ServiceError) as exc:
        raise _fail(exc) from exc

    table = Table(title=f"Sources in {file}")
    table.add_column("Location")
    table.add_column("Type")
    table.add_column("Content type")
    table.add_column("Bytes", justify="right")
    for summary in summaries:
        table.add_row(summary.location, summary.source_type, summary.content_type, str(summary.size))
    console.print(table)
    console.print(f"[green]Manifest is valid (schema {manifest.schema_version})[/green]")


@app.command("init")
def init_manifest(
    file: Path = typer.Option(Path(DEFAULT_MANIFEST_NAME), "--file", "-f", help=FILE_OPTION_HELP),
    source: str = typer.Option("openapi.yaml", "--source", help="Location of the first OpenAPI document"),
) -> None:
    """Write a starter manifest if one does not exist yet."""
    if file.exists():
        console.print(f"[yellow]Manifest already exists:[/yellow] {file}")
        raise typer.Exit(code=0)

    write_manifest(file, example_manifest(source))
    console.print(f"[green]Manifest created:[/green] {file}")


@app.command("set-key")
def set_key() -> None:
    """Store a Gram API key in the OS keyring."""
    secret = typer.prompt("Enter Gram API key", hide_input=True)
    try:
        settings = load_settings()
        store_api_key(settings.keyring_service, validate_api_key(secret.strip()))
    except (ConfigError, CredentialError, KeychainError) as exc:
        raise _fail(exc) from exc
    console.print("[green]API key stored[/green]")


@app.command("forget-key")
def forget_key() -> None:
    """Remove the stored Gram API key from the OS keyring."""
    try:
        settings = load_settings()
        deleted = forget_api_key(settings.keyring_service)
    except (ConfigError, KeychainError) as exc:
        raise _fail(exc) from exc

    if deleted:
        console.print("[green]API key removed[/green]")
    else:
        console.print("[yellow]No API key stored[/yellow]")


if __name__ == "__main__":
    app()
