"""
Command-line interface for ZipDrop.

Drop files to get back a shareable link, and manage the storage setup,
using the Click framework.
"""

import asyncio
import logging
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Prompt
from rich.table import Table

from shared.models import StorageConfig
from .config_store import ConfigStore, mask
from .errors import NotConfiguredError, ZipDropError
from .pipeline import DropContext, process_and_upload
from .uploader import StorageUploader

console = Console()


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def _fail(error: ZipDropError) -> NoReturn:
    console.print(f"[red]❌ {escape(error.message)}[/red]")
    if getattr(error, "file", None):
        console.print(f"   File: [cyan]{escape(error.file)}[/cyan]")
    raise SystemExit(1)


def _require_config(store: ConfigStore) -> StorageConfig:
    config = store.load_storage_config()
    if config is None:
        raise NotConfiguredError("R2 not configured. Run 'zipdrop config set' first.")
    return config


@click.group()
@click.version_option(version="1.0.0")
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
@click.option('--config-dir', type=click.Path(file_okay=False, path_type=Path),
              help='Use a different config directory')
@click.pass_context
def cli(ctx, verbose, config_dir):
    """
    📦 ZipDrop

    Turn any set of files into one shareable link
    (Cloudflare R2 upload, or a local file in demo mode).
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)]
    )
    ctx.obj = ConfigStore(config_dir)


@cli.command()
@click.argument('paths', nargs=-1, required=True, type=click.Path(path_type=Path))
@click.option('--demo/--remote', default=None,
              help='Keep the artifact locally or upload it (defaults to saved mode)')
@click.option('--output-dir', type=click.Path(file_okay=False, path_type=Path),
              help='Where to write the artifact')
@click.pass_obj
def drop(store, paths, demo, output_dir):
    """
    Process dropped files and share the result.

    Several files become a ZIP archive, a single image becomes WebP,
    anything else is passed through unchanged.
    """
    try:
        settings = store.load_settings()
        if demo is not None:
            settings.demo_mode = demo

        context = DropContext(
            settings=settings,
            storage_config=None if settings.demo_mode else store.load_storage_config(),
            output_dir=output_dir
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True
        ) as progress:
            progress.add_task(
                "Processing..." if settings.demo_mode else "Processing and uploading...",
                total=None
            )
            result = asyncio.run(process_and_upload(list(paths), context))

    except ZipDropError as e:
        _fail(e)

    table = Table(show_header=False, box=None)
    table.add_column(style="cyan")
    table.add_column()
    table.add_row("URL", f"[bold green]{result.url}[/bold green]")
    if result.object_key:
        table.add_row("Key", result.object_key)
    table.add_row("Type", result.file_type)
    table.add_row("Size", f"{_format_size(result.original_size)} → {_format_size(result.processed_size)}")
    table.add_row("Mode", "demo (local)" if result.is_demo else "R2")

    console.print(Panel.fit(table, title="✅ Drop complete", border_style="green"))


@cli.group()
def config():
    """Manage Cloudflare R2 credentials."""
    pass


@config.command('set')
@click.option('--verify/--no-verify', default=True,
              help='Check the credentials against the bucket before saving')
@click.pass_obj
def config_set(store, verify):
    """Prompt for R2 credentials and save them."""
    console.print(Panel.fit(
        "[bold]Cloudflare R2 Setup[/bold]\n\n"
        "[yellow]You'll need:[/yellow]\n"
        "• Account ID (found in R2 dashboard)\n"
        "• Access Key ID and Secret Access Key\n"
        "• Bucket name\n"
        "• Public URL of the bucket (r2.dev or custom domain)",
        border_style="blue"
    ))

    new_config = StorageConfig(
        account_id=Prompt.ask("Cloudflare Account ID").strip(),
        access_key=Prompt.ask("Access Key ID").strip(),
        secret_key=Prompt.ask("Secret Access Key", password=True).strip(),
        bucket_name=Prompt.ask("Bucket name").strip(),
        public_url_base=Prompt.ask("Public URL base").strip()
    )
    _save_config(store, new_config, verify)


@config.command('import-env')
@click.argument('env_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--verify/--no-verify', default=True,
              help='Check the credentials against the bucket before saving')
@click.pass_obj
def config_import_env(store, env_file, verify):
    """Import R2 credentials from a .env file."""
    try:
        new_config = store.import_env(env_file)
    except ZipDropError as e:
        _fail(e)
    _save_config(store, new_config, verify)


def _save_config(store: ConfigStore, new_config: StorageConfig, verify: bool) -> None:
    if not new_config.is_complete():
        console.print("[red]❌ All fields are required.[/red]")
        raise SystemExit(1)

    try:
        if verify:
            with console.status("Checking credentials..."):
                asyncio.run(StorageUploader().validate_credentials(new_config))
            console.print("[green]✓[/green] Credentials verified")
        store.save_storage_config(new_config)
        settings = store.load_settings()
        settings.demo_mode = False
        store.save_settings(settings)
    except ZipDropError as e:
        _fail(e)

    console.print(f"[green]✓[/green] Configuration saved to: {store.config_path}")
    console.print("[green]✓[/green] Mode: [bold]remote[/bold] (uploads go to R2)")


@config.command('show')
@click.pass_obj
def config_show(store):
    """Show the stored configuration with secrets masked."""
    try:
        current = _require_config(store)
    except ZipDropError as e:
        _fail(e)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Account ID", current.account_id)
    table.add_row("Access Key", mask(current.access_key))
    table.add_row("Secret Key", mask(current.secret_key))
    table.add_row("Bucket", current.bucket_name)
    table.add_row("Public URL", current.public_url_base)
    table.add_row("Endpoint", current.endpoint)
    console.print(table)


@config.command('validate')
@click.pass_obj
def config_validate(store):
    """Check the stored credentials against the bucket."""
    try:
        current = _require_config(store)
        with console.status("Checking credentials..."):
            asyncio.run(StorageUploader().validate_credentials(current))
    except ZipDropError as e:
        _fail(e)
    console.print("[green]✓[/green] Credentials are valid")


@config.command('clear')
@click.confirmation_option(prompt='Remove stored R2 credentials?')
@click.pass_obj
def config_clear(store):
    """Remove the stored credentials."""
    try:
        store.delete_storage_config()
    except ZipDropError as e:
        _fail(e)
    console.print("[green]✓[/green] Configuration removed")


@cli.command()
@click.argument('new_mode', type=click.Choice(['demo', 'remote']))
@click.option('--output-dir', type=click.Path(file_okay=False),
              help='Where demo-mode artifacts are kept')
@click.pass_obj
def mode(store, new_mode, output_dir):
    """Switch between demo (keep locally) and remote (upload) mode."""
    try:
        settings = store.load_settings()
        settings.demo_mode = new_mode == 'demo'
        if output_dir:
            settings.demo_output_dir = output_dir
        store.save_settings(settings)
    except ZipDropError as e:
        _fail(e)

    console.print(f"[green]✓[/green] Mode: [bold]{new_mode}[/bold]")
    if new_mode == 'remote' and store.load_storage_config() is None:
        console.print("[yellow]R2 is not configured yet. Run 'zipdrop config set'.[/yellow]")


@cli.command()
@click.pass_obj
def status(store):
    """Show configuration status."""
    try:
        current = store.config_status()
    except ZipDropError as e:
        _fail(e)

    console.print(f"Mode: [bold]{'demo' if current.demo_mode else 'remote'}[/bold]")
    if current.is_configured:
        console.print(f"R2: [green]configured[/green] (bucket [cyan]{current.bucket_name}[/cyan])")
    else:
        console.print("R2: [yellow]not configured[/yellow]")


@cli.command()
@click.argument('key')
@click.pass_obj
def delete(store, key):
    """Delete an uploaded object by its key."""
    try:
        current = _require_config(store)
        asyncio.run(StorageUploader().delete(key, current))
    except ZipDropError as e:
        _fail(e)
    console.print(f"[green]✓[/green] Deleted [cyan]{key}[/cyan]")


@cli.command()
@click.argument('key')
@click.pass_obj
def check(store, key):
    """Check whether an uploaded object still exists."""
    try:
        current = _require_config(store)
        found = asyncio.run(StorageUploader().exists(key, current))
    except ZipDropError as e:
        _fail(e)

    if found:
        console.print(f"[green]✓[/green] [cyan]{key}[/cyan] exists")
    else:
        console.print(f"[yellow]{key} not found[/yellow]")
        raise SystemExit(1)


if __name__ == '__main__':
    cli()
