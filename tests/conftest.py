"""Shared fixtures for cidvault tests."""

from pathlib import Path

import pytest

from cidvault.core import PipelineConfig
from cidvault.stores import LocalContentStore, LocalObjectStore

KEY = b"0123456789abcdef0123456789abcdef"
ROUTING_KEY = b"fedcba9876543210"


@pytest.fixture
def key() -> bytes:
    """32-byte chunk key."""
    return KEY


@pytest.fixture
def routing_key() -> bytes:
    """16-byte routing key, distinct from the chunk key."""
    return ROUTING_KEY


@pytest.fixture
def content_store(tmp_path: Path) -> LocalContentStore:
    """Directory-backed content store."""
    return LocalContentStore(tmp_path / "content")


@pytest.fixture
def object_store(tmp_path: Path) -> LocalObjectStore:
    """Directory-backed object store."""
    return LocalObjectStore(tmp_path / "objects")


@pytest.fixture
def small_chunks(tmp_path: Path) -> PipelineConfig:
    """Pipeline settings with 4-byte chunks and no retry delay."""
    return PipelineConfig(chunk_size=4, retry_backoff=0, debug_dir=tmp_path / "debug")
