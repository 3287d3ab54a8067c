"""
Service wiring.

Builds the default object graph from settings. Nothing here is a global:
every call returns a fresh, independent set of services.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from craftlog.audit import AuditLogger, configure_logging
from craftlog.config import Settings, get_settings
from craftlog.repositories import JobRepository
from craftlog.services.backup import BackupService
from craftlog.services.entries import EntryService
from craftlog.services.receipts import (
    CloudinaryReceiptStorage,
    LocalReceiptStorage,
    ReceiptStorageInterface,
)
from craftlog.services.storage import InMemoryRecordStore, RecordStore, SQLiteRecordStore
from craftlog.services.summary import SummaryService

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    """Everything a caller (UI, script) needs, sharing one store."""

    store: RecordStore
    receipts: ReceiptStorageInterface
    audit: AuditLogger
    jobs: JobRepository
    entries: EntryService
    backup: BackupService
    summary: SummaryService

    def close(self) -> None:
        self.store.close()


def build_store(settings: Settings) -> RecordStore:
    store_settings = settings.store
    if store_settings.backend == "memory":
        return InMemoryRecordStore()
    store_settings.data_dir.mkdir(parents=True, exist_ok=True)
    return SQLiteRecordStore(store_settings.db_path)


def build_receipts(settings: Settings) -> ReceiptStorageInterface:
    receipt_settings = settings.receipts
    if receipt_settings.backend == "cloudinary":
        return CloudinaryReceiptStorage(settings.cloudinary)
    return LocalReceiptStorage(receipt_settings.local_dir)


def build_services(settings: Optional[Settings] = None) -> Services:
    """
    Configure logging and construct every service from settings.

    Args:
        settings: Settings to use (default: get_settings())
    """
    settings = settings or get_settings()
    app = settings.app
    configure_logging(app.log_level, app.json_logs)

    store = build_store(settings)
    receipts = build_receipts(settings)
    audit = AuditLogger()

    logger.info(
        "services_built",
        store=type(store).__name__,
        receipts=type(receipts).__name__,
    )
    return Services(
        store=store,
        receipts=receipts,
        audit=audit,
        jobs=JobRepository(store),
        entries=EntryService(
            store,
            receipts,
            owner_id=app.owner_id,
            audit_logger=audit,
            default_km_rate=app.default_km_rate,
        ),
        backup=BackupService(store, audit_logger=audit, app_slug=app.app_slug),
        summary=SummaryService(store),
    )
