"""
Receipt Storage Interface

Receipt photos live outside the record store, in a file storage
collaborator. The store transaction and the file storage are NOT one
atomic resource, so the entry service uses an upload-then-commit protocol
with compensating deletes. This module provides the pieces of that
protocol that belong to storage:

- upload / delete primitives (implemented per backend)
- upload_batch: sequential, all-or-nothing. If any upload fails, the
  files already uploaded in this batch are deleted before the error
  propagates.

Path format: {owner}/{work_entry_id}/{expense_id}.<ext>
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from io import BytesIO
from pathlib import PurePosixPath
from typing import Optional, Sequence

import structlog
from PIL import Image, UnidentifiedImageError

from craftlog.exceptions import ReceiptStorageError

logger = structlog.get_logger(__name__)

DEFAULT_EXTENSION = "jpg"

# Pillow format name -> file extension
_FORMAT_EXTENSIONS = {
    "JPEG": "jpg",
    "PNG": "png",
    "WEBP": "webp",
    "GIF": "gif",
    "HEIF": "heic",
    "TIFF": "tif",
    "BMP": "bmp",
}


def receipt_path(owner: str, work_entry_id: str, expense_id: str, ext: str = DEFAULT_EXTENSION) -> str:
    """Build the storage path for a receipt."""
    return f"{owner}/{work_entry_id}/{expense_id}.{ext.lstrip('.').lower()}"


def receipt_extension(data: bytes, filename: Optional[str] = None) -> str:
    """
    Pick the file extension for a receipt.

    The filename suffix wins; otherwise the bytes are sniffed with Pillow;
    otherwise we fall back to jpg (what the camera almost always produces).
    """
    if filename:
        suffix = PurePosixPath(filename).suffix.lstrip(".").lower()
        if suffix:
            return "jpg" if suffix == "jpeg" else suffix
    if data.startswith(b"%PDF"):
        return "pdf"
    try:
        with Image.open(BytesIO(data)) as img:
            return _FORMAT_EXTENSIONS.get(img.format or "", DEFAULT_EXTENSION)
    except (UnidentifiedImageError, OSError):
        return DEFAULT_EXTENSION


@dataclass(frozen=True)
class ReceiptUpload:
    """One file of an upload batch."""
    path: str
    data: bytes


class ReceiptStorageInterface(ABC):
    """
    Abstract interface for receipt file storage.

    Implementations raise ReceiptStorageError on failure.
    """

    @abstractmethod
    async def upload(self, path: str, data: bytes) -> str:
        """
        Upload a single receipt file.

        Must not overwrite an existing file at the same path.

        Returns:
            The storage path (not a full URL)
        """
        pass

    @abstractmethod
    async def delete(self, paths: Sequence[str]) -> None:
        """
        Delete one or more receipt files.

        Missing files are ignored; any other failure raises.
        """
        pass

    async def upload_batch(self, items: Sequence[ReceiptUpload]) -> list[str]:
        """
        Upload several receipts. If ANY upload fails, delete the files
        already uploaded in this batch and re-raise.

        Returns:
            Paths of the uploaded files, in input order
        """
        uploaded: list[str] = []

        for item in items:
            try:
                uploaded.append(await self.upload(item.path, item.data))
            except Exception as e:
                if uploaded:
                    try:
                        await self.delete(uploaded)
                    except Exception as rollback_error:
                        logger.error(
                            "receipt_batch_rollback_failed",
                            paths=uploaded,
                            error=str(rollback_error),
                        )
                if isinstance(e, ReceiptStorageError):
                    raise
                raise ReceiptStorageError(f"Receipt upload failed ({item.path}): {e}") from e

        return uploaded
