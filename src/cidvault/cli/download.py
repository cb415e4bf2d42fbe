"""Download commands for the cidvault CLI.

Commands:
- download: Rebuild a file from its shareable hash
- restore: Rebuild a file from its base address and known bucket/path/name
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import click

from cidvault.cli.config import DEFAULT_DOWNLOAD_CONFIG, load_download_config, resolve_scope
from cidvault.core.types import CidVaultError

if TYPE_CHECKING:
    from cidvault.core.config import DownloadConfig
    from cidvault.pipeline.download import FileDownloader


@contextmanager
def _downloader(
    config_path: Path, use_key: bool
) -> Iterator[tuple[DownloadConfig, FileDownloader]]:
    """Open the stores described by a download config and yield a downloader on them."""
    from cidvault.pipeline.download import FileDownloader
    from cidvault.stores.content import create_content_store
    from cidvault.stores.objects import create_object_store

    config = load_download_config(config_path)
    scope, _ = resolve_scope(config.object_store, use_key)
    with (
        create_content_store(config.content_store) as content_store,
        create_object_store(config.object_store, scope) as object_store,
    ):
        yield config, FileDownloader(
            object_store=object_store,
            chunk_key=config.object_store.chunk_key_bytes,
            routing_key=config.object_store.routing_key,
            content_store=content_store,
        )


@click.command()
@click.argument(
    "download_config",
    type=click.Path(path_type=Path),
    default=str(DEFAULT_DOWNLOAD_CONFIG),
)
@click.option("--key", "use_key", is_flag=True, help="Build the scope from raw credentials.")
@click.option("--hash", "share_hash", default=None, help="Shareable hash (overrides the config).")
def download(download_config: Path, use_key: bool, share_hash: str | None) -> None:
    """Download a mirrored file from its shareable hash."""
    try:
        with _downloader(download_config, use_key) as (config, downloader):
            result = downloader.download_shared(
                share_hash or config.share_hash,
                Path(config.download_path),
            )
    except CidVaultError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f'File "{result.local_path.name}" downloaded to "{config.download_path}"')


@click.command()
@click.argument("base_address")
@click.option("--bucket", required=True, help="Bucket holding the upload.")
@click.option("--path-prefix", default="", help="Storage path prefix of the upload.")
@click.option("--name", "file_name", required=True, help="Original file name.")
@click.option(
    "--config",
    "download_config",
    type=click.Path(path_type=Path),
    default=str(DEFAULT_DOWNLOAD_CONFIG),
    help="Download configuration (credentials, keys, destination).",
)
@click.option("--key", "use_key", is_flag=True, help="Build the scope from raw credentials.")
def restore(
    base_address: str,
    bucket: str,
    path_prefix: str,
    file_name: str,
    download_config: Path,
    use_key: bool,
) -> None:
    """Download a mirrored file without a locator."""
    from cidvault.core.codec import RoutingPayload

    routing = RoutingPayload(bucket=bucket, path_prefix=path_prefix, file_name=file_name)
    try:
        with _downloader(download_config, use_key) as (config, downloader):
            result = downloader.download_routing(
                base_address, routing, Path(config.download_path)
            )
    except CidVaultError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f'File "{result.local_path.name}" downloaded to "{config.download_path}"')
