"""Pipeline module - Upload, download and retry.

This module provides:
- FileUploader: chunk, encrypt, address and upload a file, return its locator
- FileDownloader: resolve a locator and reassemble the original file
- upload_with_retry: bounded retry used for every object upload
"""

from cidvault.pipeline.download import FileDownloader, reassemble
from cidvault.pipeline.retry import DEFAULT_MAX_ATTEMPTS, upload_with_retry
from cidvault.pipeline.types import (
    DownloadResult,
    ProgressCallback,
    TransferProgress,
    UploadResult,
)
from cidvault.pipeline.upload import FileUploader

__all__ = [
    "DEFAULT_MAX_ATTEMPTS",
    "DownloadResult",
    "FileDownloader",
    "FileUploader",
    "ProgressCallback",
    "TransferProgress",
    "UploadResult",
    "reassemble",
    "upload_with_retry",
]
