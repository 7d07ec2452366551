"""
CLI Main - Typer-based command-line interface.

Usage:
    integratepdf push 3 doc-123 fields.json
    integratepdf test 3
    integratepdf migrate-keys --dry-run
    integratepdf serve
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from integratepdf.config import IntegratePDFError

app = typer.Typer(
    name="integratepdf",
    help="IntegratePDF - Push extracted PDF data to Notion and Google Sheets",
    add_completion=False,
)
console = Console()


def load_fields(path: Path) -> list:
    """
    Read extracted fields from a JSON file.

    Accepts either a list of field objects (as produced by extraction) or a
    flat {field_key: value} object.
    """
    from integratepdf.domains.mapping import ExtractedField

    data = json.loads(path.read_text())
    if isinstance(data, dict):
        return [
            ExtractedField(field_key=key, field_value="" if value is None else str(value))
            for key, value in data.items()
        ]
    return [ExtractedField.model_validate(item) for item in data]


async def _open_services():
    """Build repository, vault and orchestrator from settings."""
    from functools import partial

    from integratepdf.adapters import IntegrationRepository, build_destination_adapter
    from integratepdf.config import get_settings
    from integratepdf.domains.push import PushOrchestrator
    from integratepdf.domains.vault import CredentialVault

    settings = get_settings()
    vault = CredentialVault.from_settings(settings)
    repo = IntegrationRepository(settings.db_path)
    await repo.initialize()
    orchestrator = PushOrchestrator(
        repo,
        vault,
        partial(build_destination_adapter, settings=settings),
        max_attempts=settings.push_max_attempts,
    )
    return repo, vault, orchestrator


@app.command()
def push(
    integration_id: int = typer.Argument(..., help="Destination ID"),
    document_id: str = typer.Argument(..., help="Source document ID"),
    fields_path: Path = typer.Argument(..., help="JSON file with extracted fields"),
    mapping_path: Path | None = typer.Option(
        None, "--mapping", "-m", help="JSON file with field_key -> target mapping"
    ),
    document_name: str | None = typer.Option(
        None, "--name", "-n", help="Name for an auto-created spreadsheet"
    ),
) -> None:
    """Push a document's extracted fields to a destination."""
    for path in (fields_path, mapping_path):
        if path is not None and not path.exists():
            console.print(f"[red]Error:[/red] File not found: {path}")
            raise typer.Exit(1)

    fields = load_fields(fields_path)
    mapping = json.loads(mapping_path.read_text()) if mapping_path else None

    asyncio.run(_push_async(integration_id, document_id, fields, mapping, document_name))


async def _push_async(
    integration_id: int,
    document_id: str,
    fields: list,
    mapping: dict[str, str] | None,
    document_name: str | None,
) -> None:
    """Async push implementation."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Initializing...", total=None)

        try:
            repo, _, orchestrator = await _open_services()
        except IntegratePDFError as e:
            console.print(f"[red]Error:[/red] {e.message}")
            raise typer.Exit(1)

        try:
            progress.update(task, description=f"Pushing {len(fields)} fields...")
            result = await orchestrator.push_extracted_data(
                integration_id,
                document_id,
                fields,
                mapping=mapping,
                document_name=document_name,
            )
        except IntegratePDFError as e:
            console.print(f"[red]Error:[/red] {e.message}")
            raise typer.Exit(1)
        finally:
            await repo.close()

    if result.success:
        table = Table(title="Push Complete")
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Destination", str(result.integration_id))
        table.add_row("Document", result.document_id)
        table.add_row("External ID", result.external_id or "")
        for key, value in result.details.items():
            table.add_row(key, str(value))
        console.print(table)
        return

    error = result.error or {}
    suggestions = "\n".join(f"  - {s}" for s in error.get("suggestions", []))
    console.print(
        Panel(
            f"[bold]{error.get('code', 'UNKNOWN')}[/bold]\n{error.get('message', '')}"
            + (f"\n\n[bold]Suggestions:[/bold]\n{suggestions}" if suggestions else ""),
            title="Push Failed",
            style="red",
        )
    )
    raise typer.Exit(1)


@app.command()
def test(
    integration_id: int = typer.Argument(..., help="Destination ID"),
) -> None:
    """Check a destination's credentials."""
    asyncio.run(_test_async(integration_id))


async def _test_async(integration_id: int) -> None:
    """Async connection test."""
    try:
        repo, _, orchestrator = await _open_services()
    except IntegratePDFError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    try:
        with console.status("Testing connection..."):
            ok = await orchestrator.test_destination(integration_id)
    except IntegratePDFError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        await repo.close()

    if ok:
        console.print(f"[green]Connection to destination {integration_id} OK[/green]")
    else:
        console.print(f"[red]Connection to destination {integration_id} failed[/red]")
        raise typer.Exit(1)


@app.command("migrate-keys")
def migrate_keys(
    dry_run: bool = typer.Option(False, "--dry-run", help="Report without writing"),
) -> None:
    """Encrypt plaintext credentials left by older versions."""
    asyncio.run(_migrate_async(dry_run))


async def _migrate_async(dry_run: bool) -> None:
    """Async migration."""
    from integratepdf.domains.vault import encrypt_stored_credentials

    try:
        repo, vault, _ = await _open_services()
    except IntegratePDFError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    try:
        summary = await encrypt_stored_credentials(repo, vault, dry_run=dry_run)
    finally:
        await repo.close()

    table = Table(title="Migration Summary" + (" (dry run)" if dry_run else ""))
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Checked", str(summary.checked))
    table.add_row("Encrypted", str(summary.migrated))
    table.add_row("Skipped", str(summary.skipped))
    table.add_row("Failed", str(len(summary.failed)))
    console.print(table)

    if not summary.ok:
        console.print(f"[red]Failed integrations:[/red] {', '.join(map(str, summary.failed))}")
        raise typer.Exit(1)


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
) -> None:
    """Start the API server."""
    import uvicorn

    from integratepdf.config import get_settings

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print("\n[green]Starting IntegratePDF API server[/green]")
    console.print(f"[dim]http://{host}:{port}[/dim]\n")

    uvicorn.run(
        "integratepdf.interfaces.api:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def version() -> None:
    """Show version information."""
    from integratepdf import __version__

    console.print(f"IntegratePDF v{__version__}")


def main() -> None:
    """CLI entry point."""
    from integratepdf.config import get_settings

    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app()


if __name__ == "__main__":
    main()
