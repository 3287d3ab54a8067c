"""Receipt file storage package."""

from craftlog.services.receipts.interface import (
    ReceiptStorageInterface,
    ReceiptUpload,
    receipt_extension,
    receipt_path,
)
from craftlog.services.receipts.local import LocalReceiptStorage
from craftlog.services.receipts.cloudinary_service import CloudinaryReceiptStorage

__all__ = [
    "CloudinaryReceiptStorage",
    "LocalReceiptStorage",
    "ReceiptStorageInterface",
    "ReceiptUpload",
    "receipt_extension",
    "receipt_path",
]
