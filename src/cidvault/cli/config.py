"""Configuration utilities for the cidvault CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

from cidvault.core.config import ContentStoreConfig, DownloadConfig, ObjectStoreConfig
from cidvault.core.types import InvalidConfiguration
from cidvault.stores.scope import AccessScope, Caveat

logger = logging.getLogger(__name__)

CONFIG_DIR = Path("./config")
DEFAULT_CONTENT_CONFIG = CONFIG_DIR / "content_store.json"
DEFAULT_OBJECT_CONFIG = CONFIG_DIR / "object_store.json"
DEFAULT_DOWNLOAD_CONFIG = CONFIG_DIR / "download.json"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(debug: bool = False) -> None:
    """Configure the cidvault logger to write to stdout.

    Args:
        debug: Log per-chunk details (DEBUG level) instead of INFO.
    """
    root_logger = logging.getLogger("cidvault")
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    # Remove any existing handlers (repeated invocations in one process)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(stdout_handler)


def load_json(path: Path) -> dict[str, Any]:
    """Load a JSON configuration file.

    Raises:
        InvalidConfiguration: If the file is missing or not a JSON object.
    """
    path = Path(path)
    if not path.exists():
        raise InvalidConfiguration(f"Configuration file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InvalidConfiguration(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise InvalidConfiguration(f"Configuration in {path} must be a JSON object")
    logger.info(f"Reading configuration from file: {path}")
    return data


def load_content_store_config(path: Path) -> ContentStoreConfig:
    """Load content store settings (node address, source file, chunk size)."""
    return ContentStoreConfig.from_dict(load_json(path))


def load_object_store_config(path: Path) -> ObjectStoreConfig:
    """Load object store settings (credentials, bucket, keys)."""
    config = ObjectStoreConfig.from_dict(load_json(path))
    if not config.bucket:
        raise InvalidConfiguration(f"Missing 'bucketName' in {path}")
    return config


def load_download_config(path: Path) -> DownloadConfig:
    """Load download settings."""
    return DownloadConfig.from_dict(load_json(path))


def resolve_scope(
    config: ObjectStoreConfig,
    use_key: bool = False,
    restrict: bool = False,
) -> tuple[AccessScope, str | None]:
    """Work out the access scope for a command.

    With use_key the scope is built from the raw credentials and its
    serialized form is returned for sharing (restricted to the configured
    bucket, path and caveats when restrict is set). Otherwise the
    configured serialized scope is used, falling back to raw credentials.

    Returns:
        Tuple of (scope to connect with, serialized scope to print or None).
    """
    if use_key:
        scope = AccessScope.from_config(config)
        if restrict:
            restricted = scope.restrict(
                caveat=Caveat(
                    disallow_reads=config.disallow_reads,
                    disallow_writes=config.disallow_writes,
                    disallow_deletes=config.disallow_deletes,
                ),
                bucket=config.bucket,
                path_prefix=config.upload_path,
            )
            return scope, restricted.serialize()
        return scope, scope.serialize()

    if config.serialized_scope:
        return AccessScope.parse(config.serialized_scope), None
    return AccessScope.from_config(config), None
