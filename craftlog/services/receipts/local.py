"""
Local Filesystem Receipt Storage

Keeps receipt files in a directory on the device, so the whole tracker
works offline. Paths map 1:1 onto files under the root directory.
"""

import os
from pathlib import Path
from typing import Sequence, Union

import structlog

from craftlog.exceptions import ReceiptStorageError
from craftlog.services.receipts.interface import ReceiptStorageInterface

logger = structlog.get_logger(__name__)


class LocalReceiptStorage(ReceiptStorageInterface):
    """Receipt storage rooted at a local directory."""

    def __init__(self, root_dir: Union[str, Path]):
        self.root_dir = Path(root_dir).resolve()
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        """Map a storage path to a file, refusing anything outside the root."""
        if not path or path.startswith("/"):
            raise ReceiptStorageError(f"Invalid receipt path: {path!r}")
        target = (self.root_dir / path).resolve()
        if self.root_dir not in target.parents:
            raise ReceiptStorageError(f"Receipt path escapes storage root: {path!r}")
        return target

    async def upload(self, path: str, data: bytes) -> str:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            # "x" mode: never overwrite an existing receipt
            with open(target, "xb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
        except FileExistsError:
            raise ReceiptStorageError(f"Receipt upload failed ({path}): file already exists")
        except OSError as e:
            raise ReceiptStorageError(f"Receipt upload failed ({path}): {e}") from e

        logger.debug("receipt_uploaded", path=path, size_bytes=len(data))
        return path

    async def delete(self, paths: Sequence[str]) -> None:
        if not paths:
            return
        failed = []
        for path in paths:
            try:
                target = self._resolve(path)
                target.unlink(missing_ok=True)
                self._prune_empty_dirs(target.parent)
            except (OSError, ReceiptStorageError) as e:
                failed.append(f"{path}: {e}")
        if failed:
            raise ReceiptStorageError(f"Receipt deletion failed: {'; '.join(failed)}")

        logger.debug("receipts_deleted", count=len(paths))

    def _prune_empty_dirs(self, directory: Path) -> None:
        while directory != self.root_dir and self.root_dir in directory.parents:
            try:
                directory.rmdir()
            except OSError:
                return
            directory = directory.parent

    async def read(self, path: str) -> bytes:
        """Read back a stored receipt."""
        try:
            return self._resolve(path).read_bytes()
        except OSError as e:
            raise ReceiptStorageError(f"Receipt read failed ({path}): {e}") from e

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()
