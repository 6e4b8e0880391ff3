"""Thin CLI wrapper for bundle_cache.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from bundle_cache import __version__
from bundle_cache.config import get_settings, print_settings_json

if TYPE_CHECKING:
    from bundle_cache.index.manager import IndexManager

app = typer.Typer(
    name="bundle-cache",
    help="Bundle Cache - build, store and look up versioned package bundles",
    no_args_is_help=True,
)
console = Console()


def configure_logging(level: str) -> None:
    """Route log records through rich on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"bundle-cache version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Bundle Cache - build, store and look up versioned package bundles."""
    configure_logging("DEBUG" if verbose else get_settings().log_level)


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings))
        return

    def _show(value: object) -> str:
        return str(value) if value else "[yellow](not set)[/yellow]"

    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Data directory:      {settings.data_dir}")
    console.print(f"  Index file:          {settings.index_path}")
    console.print(f"  Failed file:         {settings.failed_path}")
    console.print(f"  Packages file:       {settings.packages_path}")
    console.print(f"  Work directory:      {settings.work_dir}")
    console.print()
    console.print("[bold]Storage:[/bold]")
    console.print(f"  Endpoint:            {settings.storage_endpoint}")
    console.print(f"  Project:             {_show(settings.storage_project)}")
    console.print(f"  Bucket:              {_show(settings.storage_bucket_id)}")
    console.print(f"  API key:             {'***' if settings.storage_api_key else _show(None)}")
    console.print(f"  Index storage ID:    {settings.index_storage_id}")
    console.print()
    console.print("[bold]Builds:[/bold]")
    console.print(f"  Registry:            {settings.registry_url}")
    console.print(f"  Persist every:       {settings.persist_every}")
    console.print(f"  Max builds:          {settings.max_concurrent_builds}")
    console.print()
    console.print("[bold]Timeouts (seconds):[/bold]")
    console.print(f"  Resolve timeout:     {settings.resolve_timeout}")
    console.print(f"  Build timeout:       {settings.build_timeout}")
    console.print(f"  Upload timeout:      {settings.upload_timeout}")


catalog_app = typer.Typer(help="Manage the package list")
app.add_typer(catalog_app, name="catalog")


@catalog_app.command("fetch")
def catalog_fetch(
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Package list file (default from settings)"),
    ] = None,
) -> None:
    """Fetch the package list from the catalog."""
    import httpx

    from bundle_cache.catalog import CatalogError, fetch_catalog, write_catalog

    settings = get_settings()
    names_path = output or settings.packages_path

    try:
        with httpx.Client() as client:
            packages = fetch_catalog(client, base_url=settings.catalog_url)
    except CatalogError as e:
        console.print(f"[red]Catalog fetch failed: {e}[/red]")
        raise typer.Exit(code=1) from None

    names_path, details_path = write_catalog(packages, names_path)
    native = sum(1 for p in packages if p.has_native_code)

    console.print(f"[green]Saved {len(packages)} packages[/green]")
    console.print(f"  {names_path}")
    console.print(f"  {details_path}")
    console.print(f"  JS-only: {len(packages) - native}, with native code: {native}")


builds_app = typer.Typer(help="Build and upload bundles")
app.add_typer(builds_app, name="build")


@builds_app.command("run")
def build_run(
    names: Annotated[
        list[str] | None,
        typer.Argument(help="Package names (default: the package list file)"),
    ] = None,
    packages_file: Annotated[
        Path | None,
        typer.Option("--packages-file", "-p", help="JSON list of package names"),
    ] = None,
    workers: Annotated[
        int | None,
        typer.Option("--workers", "-w", min=1, max=16, help="Concurrent packages"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Bundle the current version of each package unless already cached."""
    from bundle_cache.builds.service import run_build_batch
    from bundle_cache.catalog import CatalogError, load_package_list
    from bundle_cache.config import ConfigurationError

    settings = get_settings()

    if not names:
        try:
            names = load_package_list(packages_file or settings.packages_path)
        except CatalogError as e:
            console.print(f"[red]{e}[/red]")
            console.print("Run `bundle-cache catalog fetch` first or pass names")
            raise typer.Exit(code=1) from None

    if not json_output:
        console.print(f"[blue]Checking {len(names)} package(s)...[/blue]")

    try:
        result = run_build_batch(names, settings=settings, max_workers=workers)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        console.print(result.model_dump_json(indent=2))
    else:
        console.print()
        console.print("[bold]Build Results:[/bold]")
        console.print(f"  [green]New bundles: {result.bundled}[/green]")
        console.print(f"  [blue]Skipped (built-in): {result.skipped_builtin}[/blue]")
        console.print(f"  [blue]Skipped (version exists): {result.skipped_exists}[/blue]")
        if result.failed > 0:
            console.print(f"  [red]Failed: {result.failed}[/red]")
        console.print(f"  New data: {result.total_size / 1024 / 1024:.2f} MB")
        console.print(f"  Time: {result.elapsed_seconds / 60:.1f} minutes")
        console.print(f"  Total in index: {result.index_entries} entries")
        if not result.index_uploaded:
            console.print("  [yellow]Index snapshot was not uploaded[/yellow]")
        if result.index_warning:
            console.print(f"  [yellow]Index warning: {result.index_warning}[/yellow]")
        if result.failures:
            console.print()
            console.print(f"[red]Failed packages saved to {settings.failed_path}[/red]")
            for failure in result.failures:
                console.print(f"  [red]✗ {failure.name}@{failure.version or '?'}[/red]")
                console.print(f"      {failure.error[:120]}")

    if result.failed > 0:
        raise typer.Exit(code=1)


index_app = typer.Typer(help="Inspect the local index")
app.add_typer(index_app, name="index")


def _load_local_index() -> "IndexManager":
    from bundle_cache.index.manager import load_index

    index, result = load_index(get_settings().index_path)
    if not result.success:
        console.print(f"[yellow]Warning: {result.message}[/yellow]")
    return index


@index_app.command("stats")
def index_stats(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show index statistics."""
    stats = _load_local_index().stats()
    if json_output:
        console.print(
            json.dumps(
                {
                    "uniquePackages": stats.unique_packages,
                    "totalVersions": stats.total_versions,
                    "totalSize": stats.total_size,
                },
                indent=2,
            )
        )
        return
    console.print(f"Packages: {stats.unique_packages}")
    console.print(f"Versions: {stats.total_versions}")
    console.print(f"Size:     {stats.total_size / 1024 / 1024:.2f} MB")


@index_app.command("show")
def index_show(
    spec: Annotated[str, typer.Argument(help="name or name@version")],
) -> None:
    """Show the index entry for a package."""
    entry = _load_local_index().get(spec)
    if entry is None:
        console.print(f"[red]Not cached: {spec}[/red]")
        raise typer.Exit(code=1)
    console.print(json.dumps(entry.to_record(), indent=2))


@index_app.command("versions")
def index_versions(
    name: Annotated[str, typer.Argument(help="Package name")],
) -> None:
    """List cached versions of a package, most recent first."""
    entries = _load_local_index().list_versions(name)
    if not entries:
        console.print(f"[yellow]No cached versions of {name}[/yellow]")
        return
    for e in entries:
        console.print(f"  {e.version:<20} {e.size_bytes / 1024:>9.1f} KB  {e.uploaded_at or '-'}")


@app.command()
def serve(
    host: Annotated[
        str | None,
        typer.Option("--host", help="Bind address (default from settings)"),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", help="Port (default from settings)"),
    ] = None,
) -> None:
    """Run the lookup API server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "web.app:app",
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    app()
