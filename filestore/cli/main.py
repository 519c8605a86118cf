"""Main CLI entry point."""

import logging
import sys
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from filestore.core.config.loader import load_config
from filestore.core.config.models import FileStoreConfig, LocalStoreConfig
from filestore.storage.base import FileStore
from filestore.storage.exceptions import TransientStorageError
from filestore.storage.factory import create_file_store
from filestore.storage.models import (
    CopyObjectInput,
    DeleteObjectInput,
    GetObjectInput,
    ListDirInput,
    Location,
    ObjectSource,
    PutObjectInput,
)
from filestore.storage.s3_store import S3FileStore
from filestore.utils.retry import Retryer
from filestore.utils.signing import presign_object, verify_signed_object

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    handlers=[RichHandler(rich_tracebacks=True)],
)

logger = logging.getLogger(__name__)
console = Console()


def _open_store(ctx: click.Context) -> Tuple[FileStoreConfig, FileStore, Retryer]:
    config_path = ctx.obj.get("config_path")
    if config_path:
        config = load_config(config_path)
    else:
        config = FileStoreConfig(store=LocalStoreConfig())
    store = create_file_store(config.store)
    retryer = Retryer.from_config(config.retry, retry_on=(TransientStorageError,))
    return config, store, retryer


def _signing_key(ctx: click.Context, key: Optional[str]) -> str:
    if key:
        return key
    config_path = ctx.obj.get("config_path")
    if config_path:
        config_key = load_config(config_path).signing_key
        if config_key:
            return config_key
    raise click.UsageError("A signing key is required (--key or signing_key in the config)")


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--config",
    "-c",
    "config_path",
    envvar="FILESTORE_CONFIG",
    help="Store configuration file; a local store is used when omitted",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str]) -> None:
    """Filestore - one file API over local disks and S3 compatible buckets."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command("ls")
@click.argument("path")
@click.option("--page", default=0, help="Page index")
@click.option("--size", default=0, help="Entries per page (0 for the backend default)")
@click.option("--filter", "filter_", default="", help="Substring entries must contain")
@click.pass_context
def list_dir(ctx: click.Context, path: str, page: int, size: int, filter_: str) -> None:
    """List a directory or prefix."""
    try:
        _, store, retryer = _open_store(ctx)
        results = retryer.send(
            lambda: store.list_dir(
                ListDirInput(path=Location(path=path), page=page, size=size, filter=filter_)
            )
        )

        table = Table(title=f"Contents of {path}")
        table.add_column("Name", style="cyan")
        table.add_column("Type", style="magenta")
        table.add_column("Size", style="green")
        table.add_column("Modified")
        for result in results:
            kind = "dir" if result.is_dir else (result.type or "file")
            modified = result.modified.strftime("%Y-%m-%d %H:%M:%S") if result.modified else ""
            table.add_row(result.name, kind, result.size, modified)
        console.print(table)

    except Exception as e:
        console.print(f"[red]✗[/red] Failed: {escape(str(e))}")
        sys.exit(1)


@cli.command()
@click.argument("path")
@click.pass_context
def info(ctx: click.Context, path: str) -> None:
    """Show metadata for a file or prefix."""
    try:
        _, store, retryer = _open_store(ctx)
        object_info = retryer.send(lambda: store.get_object_info(Location(path=path)))

        console.print(f"[bold]{object_info.name or path}[/bold]")
        console.print(f"  Directory: {object_info.is_dir}")
        console.print(f"  Size: {object_info.size:,} bytes")
        if object_info.modified:
            console.print(f"  Modified: {object_info.modified.isoformat()}")
        if object_info.etag:
            console.print(f"  ETag: {object_info.etag}")

    except Exception as e:
        console.print(f"[red]✗[/red] Failed: {escape(str(e))}")
        sys.exit(1)


@cli.command()
@click.argument("path")
@click.option("--range", "range_", default="", help="Byte range, e.g. bytes=0-99")
@click.option("--output", "-o", help="Write to this file instead of stdout")
@click.pass_context
def get(ctx: click.Context, path: str, range_: str, output: Optional[str]) -> None:
    """Read a file, optionally a byte range of it."""
    try:
        _, store, retryer = _open_store(ctx)
        reader = retryer.send(
            lambda: store.get_object(GetObjectInput(path=Location(path=path), range=range_))
        )
        try:
            if output:
                with open(output, "wb") as f:
                    for block in iter(lambda: reader.read(1024 * 1024), b""):
                        f.write(block)
                console.print(f"[green]✓[/green] Saved to {output}")
            else:
                stdout = click.get_binary_stream("stdout")
                for block in iter(lambda: reader.read(1024 * 1024), b""):
                    stdout.write(block)
                stdout.flush()
        finally:
            reader.close()

    except Exception as e:
        console.print(f"[red]✗[/red] Failed: {escape(str(e))}")
        sys.exit(1)


@cli.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.argument("dest")
@click.option("--multipart", is_flag=True, help="Use a managed multipart upload")
@click.option("--part-size", default=0, help="Multipart part size in bytes")
@click.pass_context
def put(ctx: click.Context, source: str, dest: str, multipart: bool, part_size: int) -> None:
    """Upload a local file to the store."""
    try:
        _, store, _ = _open_store(ctx)
        result = store.put_object(
            PutObjectInput(
                source=ObjectSource(filepath=Location(path=source)),
                dest=Location(path=dest),
                multipart=multipart,
                part_size=part_size,
            )
        )
        console.print(f"[green]✓[/green] Wrote {dest} (etag {result.etag})")

    except Exception as e:
        console.print(f"[red]✗[/red] Failed: {escape(str(e))}")
        sys.exit(1)


@cli.command("cp")
@click.argument("src")
@click.argument("dest")
@click.pass_context
def copy(ctx: click.Context, src: str, dest: str) -> None:
    """Copy a file within the store."""
    try:
        _, store, _ = _open_store(ctx)
        store.copy_object(CopyObjectInput(src=Location(path=src), dest=Location(path=dest)))
        console.print(f"[green]✓[/green] Copied {src} to {dest}")

    except Exception as e:
        console.print(f"[red]✗[/red] Failed: {escape(str(e))}")
        sys.exit(1)


@cli.command("rm")
@click.argument("paths", nargs=-1, required=True)
@click.pass_context
def remove(ctx: click.Context, paths: Tuple[str, ...]) -> None:
    """Delete files and directories, recursively."""
    try:
        _, store, _ = _open_store(ctx)
        errors = store.delete_objects(DeleteObjectInput(paths=Location(paths=list(paths))))
    except Exception as e:
        console.print(f"[red]✗[/red] Failed: {escape(str(e))}")
        sys.exit(1)

    if errors:
        for error in errors:
            console.print(f"[red]✗[/red] {escape(str(error))}")
        console.print(f"[red]✗[/red] Failed: {len(errors)} errors while deleting")
        sys.exit(1)
    console.print(f"[green]✓[/green] Deleted {len(paths)} paths")


@cli.command()
@click.argument("url")
@click.option("--expiration", "-e", default=3600, help="Validity in seconds (max 30 days)")
@click.option("--key", "-k", help="HMAC signing key; defaults to signing_key in the config")
@click.pass_context
def sign(ctx: click.Context, url: str, expiration: int, key: Optional[str]) -> None:
    """Sign a URL with an expiration."""
    signing_key = _signing_key(ctx, key)
    try:
        click.echo(presign_object(url, signing_key, expiration))
    except Exception as e:
        console.print(f"[red]✗[/red] Failed: {escape(str(e))}")
        sys.exit(1)


@cli.command()
@click.argument("url")
@click.option("--key", "-k", help="HMAC signing key; defaults to signing_key in the config")
@click.pass_context
def verify(ctx: click.Context, url: str, key: Optional[str]) -> None:
    """Verify the signature and expiration of a signed URL."""
    signing_key = _signing_key(ctx, key)
    if verify_signed_object(url, signing_key):
        console.print("[green]✓[/green] Valid")
    else:
        console.print("[red]✗[/red] Invalid or expired")
        sys.exit(1)


@cli.command()
@click.argument("path")
@click.option("--days", default=1, help="Days the URL stays valid")
@click.pass_context
def presign(ctx: click.Context, path: str, days: int) -> None:
    """Issue a backend presigned read URL (S3 stores only)."""
    try:
        _, store, _ = _open_store(ctx)
        if not isinstance(store, S3FileStore):
            raise click.UsageError("presign requires an S3 or MinIO store")
        click.echo(store.get_presigned_url(Location(path=path), days))

    except click.UsageError:
        raise
    except Exception as e:
        console.print(f"[red]✗[/red] Failed: {escape(str(e))}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
