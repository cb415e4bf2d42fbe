"""Command-line interface for cidvault.

This module provides the main CLI entry point and assembles all commands.

Commands:
- test: Upload sample data to the configured bucket
- store: Mirror a file into the object store and print its shareable hash
- download: Rebuild a file from its shareable hash
- restore: Rebuild a file from its base address and routing information
"""

from __future__ import annotations

import click

from cidvault.cli.config import (
    load_content_store_config,
    load_download_config,
    load_object_store_config,
    resolve_scope,
    setup_logging,
)
from cidvault.cli.download import download, restore
from cidvault.cli.store import sample_upload, store


@click.group()
@click.version_option(package_name="cidvault")
@click.option("--debug", is_flag=True, help="Verbose logging and upload read-back.")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """cidvault - Mirror IPFS files into an encrypted object store."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    setup_logging(debug)


# Upload commands
cli.add_command(sample_upload)
cli.add_command(store)

# Download commands
cli.add_command(download)
cli.add_command(restore)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "load_content_store_config",
    "load_download_config",
    "load_object_store_config",
    "resolve_scope",
    "setup_logging",
]
