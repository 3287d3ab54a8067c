"""
Services package.

Leaf services (record store, receipt storage) are re-exported here. The
entry, backup and summary services sit on top of the repositories and are
imported from their own modules.
"""

from craftlog.services.storage import (
    InMemoryRecordStore,
    RecordStore,
    SQLiteRecordStore,
)
from craftlog.services.receipts import (
    CloudinaryReceiptStorage,
    LocalReceiptStorage,
    ReceiptStorageInterface,
)

__all__ = [
    # Record store
    "InMemoryRecordStore",
    "RecordStore",
    "SQLiteRecordStore",
    # Receipt storage
    "CloudinaryReceiptStorage",
    "LocalReceiptStorage",
    "ReceiptStorageInterface",
]
