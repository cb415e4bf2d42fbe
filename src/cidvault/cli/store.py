"""Upload commands for the cidvault CLI.

Commands:
- test: Upload a small sample object to check the object store settings
- store: Mirror the configured file into the object store and print
  its shareable hash
"""

from __future__ import annotations

import sys
from datetime import date
from pathlib import Path

import click

from cidvault.cli.config import (
    DEFAULT_CONTENT_CONFIG,
    DEFAULT_OBJECT_CONFIG,
    load_content_store_config,
    load_object_store_config,
    resolve_scope,
)
from cidvault.core.types import CidVaultError, InvalidConfiguration

SAMPLE_DATA = b"test"


@click.command("test")
@click.argument(
    "object_config",
    type=click.Path(path_type=Path),
    default=str(DEFAULT_OBJECT_CONFIG),
)
@click.option("--key", "use_key", is_flag=True, help="Build the scope from raw credentials.")
@click.option("--restrict", is_flag=True, help="Print a restricted scope (with --key).")
@click.pass_context
def sample_upload(ctx: click.Context, object_config: Path, use_key: bool, restrict: bool) -> None:
    """Upload sample data to check the object store configuration."""
    from cidvault.core.codec import normalize_prefix
    from cidvault.pipeline.retry import upload_with_retry
    from cidvault.stores.objects import create_object_store

    debug = bool(ctx.obj and ctx.obj.get("debug"))
    object_name = f"uploaddata_{date.today():%Y-%m-%d}.txt" if debug else "testdata"

    try:
        config = load_object_store_config(object_config)
        scope, serialized = resolve_scope(config, use_key, restrict)
        key = normalize_prefix(config.upload_path) + object_name
        with create_object_store(config, scope) as store:
            with store.open_or_create_bucket(config.bucket) as bucket:
                upload_with_retry(lambda: bucket.put(key, SAMPLE_DATA))
    except CidVaultError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if serialized:
        label = "Restricted Serialized Scope Key" if restrict else "Serialized Scope Key"
        click.echo(f"{label}: {serialized}")
    click.echo(f'Upload "{object_name}" to bucket {config.bucket}: Successful!')


@click.command()
@click.argument(
    "content_config",
    type=click.Path(path_type=Path),
    default=str(DEFAULT_CONTENT_CONFIG),
)
@click.argument(
    "object_config",
    type=click.Path(path_type=Path),
    default=str(DEFAULT_OBJECT_CONFIG),
)
@click.option("--key", "use_key", is_flag=True, help="Build the scope from raw credentials.")
@click.option("--restrict", is_flag=True, help="Print a restricted scope (with --key).")
@click.pass_context
def store(
    ctx: click.Context,
    content_config: Path,
    object_config: Path,
    use_key: bool,
    restrict: bool,
) -> None:
    """Mirror the configured file into the object store.

    Prints the shareable hash of the published locator; that hash,
    the keys and read credentials are all a downloader needs.
    """
    from cidvault.core.config import PipelineConfig
    from cidvault.pipeline.upload import FileUploader
    from cidvault.stores.content import create_content_store
    from cidvault.stores.objects import create_object_store

    debug = bool(ctx.obj and ctx.obj.get("debug"))

    try:
        content_cfg = load_content_store_config(content_config)
        object_cfg = load_object_store_config(object_config)
        scope, serialized = resolve_scope(object_cfg, use_key, restrict)

        source = Path(content_cfg.path)
        if not source.is_file():
            raise InvalidConfiguration(f"Invalid File path entered: {source}")

        pipeline = PipelineConfig(chunk_size=content_cfg.chunk_size, verbose=debug)
        with (
            create_content_store(content_cfg) as content_store,
            create_object_store(object_cfg, scope) as object_store,
        ):
            content_store.check_connection()
            uploader = FileUploader(
                content_store=content_store,
                object_store=object_store,
                bucket=object_cfg.bucket,
                chunk_key=object_cfg.chunk_key_bytes,
                routing_key=object_cfg.routing_key,
                path_prefix=object_cfg.upload_path,
                config=pipeline,
            )
            result = uploader.upload_path(source)
            share_hash = content_store.add(result.locator)
    except CidVaultError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Uploaded {source.name}: {result.chunk_count} chunks")
    if serialized:
        label = "Restricted Serialized Scope Key" if restrict else "Serialized Scope Key"
        click.echo(f"{label}: {serialized}")
    click.echo(f"Shareable Hash: {share_hash}")
