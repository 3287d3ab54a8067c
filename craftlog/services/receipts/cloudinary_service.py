"""
Receipt Storage using Cloudinary

DESIGN DECISION: Cloudinary is the optional remote backend for receipt
photos because:
1. Reliable cloud infrastructure with a simple upload/delete API
2. Receipts stay reachable from any device that holds a backup
3. Free tier sufficient for a one-person business

Receipts are uploaded as "raw" resources so the public id is exactly the
receipt path (extension included) and nothing is transcoded.

Transient Cloudinary errors are retried; everything that still fails is
raised as ReceiptStorageError.
"""

from typing import Optional, Sequence

import cloudinary
import cloudinary.api
import cloudinary.uploader
import structlog
from cloudinary.exceptions import Error as CloudinaryError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from craftlog.config import CloudinarySettings, get_settings
from craftlog.exceptions import ReceiptStorageError
from craftlog.services.receipts.interface import ReceiptStorageInterface

logger = structlog.get_logger(__name__)

RESOURCE_TYPE = "raw"


class CloudinaryReceiptStorage(ReceiptStorageInterface):
    """
    Receipt storage on Cloudinary.

    Flow:
    1. upload() pushes bytes under public id ``{folder}/{path}``
    2. delete() removes public ids in one bulk API call
    """

    def __init__(self, settings: Optional[CloudinarySettings] = None):
        self._settings = settings or get_settings().cloudinary
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    def _public_id(self, path: str) -> str:
        folder = self._settings.folder.strip("/")
        return f"{folder}/{path}" if folder else path

    @retry(
        retry=retry_if_exception_type(CloudinaryError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _upload_once(self, path: str, data: bytes) -> dict:
        return cloudinary.uploader.upload(
            data,
            public_id=self._public_id(path),
            resource_type=RESOURCE_TYPE,
            overwrite=False,
            unique_filename=False,
            use_filename=False,
        )

    async def upload(self, path: str, data: bytes) -> str:
        """
        Upload a receipt.

        Raises:
            ReceiptStorageError: If the upload fails or the path is taken
        """
        self._configure()

        try:
            result = await self._upload_once(path, data)
        except CloudinaryError as e:
            raise ReceiptStorageError(f"Receipt upload failed ({path}): Cloudinary error: {e}") from e

        if result.get("existing"):
            raise ReceiptStorageError(f"Receipt upload failed ({path}): file already exists")
        if not result.get("public_id"):
            raise ReceiptStorageError(f"Receipt upload failed ({path}): no public id returned")

        logger.debug("receipt_uploaded", path=path, provider="cloudinary")
        return path

    @retry(
        retry=retry_if_exception_type(CloudinaryError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _delete_once(self, public_ids: list[str]) -> dict:
        return cloudinary.api.delete_resources(public_ids, resource_type=RESOURCE_TYPE)

    async def delete(self, paths: Sequence[str]) -> None:
        """
        Delete receipts. "not_found" counts as deleted.

        Raises:
            ReceiptStorageError: If any file could not be deleted
        """
        if not paths:
            return
        self._configure()

        public_ids = [self._public_id(path) for path in paths]
        try:
            result = await self._delete_once(public_ids)
        except CloudinaryError as e:
            raise ReceiptStorageError(f"Receipt deletion failed: Cloudinary error: {e}") from e

        outcome = result.get("deleted", {})
        failed = [
            public_id for public_id in public_ids
            if outcome.get(public_id) not in ("deleted", "not_found")
        ]
        if failed:
            raise ReceiptStorageError(f"Receipt deletion failed: {', '.join(failed)}")

        logger.debug("receipts_deleted", count=len(paths), provider="cloudinary")
