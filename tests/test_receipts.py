"""
Tests for receipt storage: path helpers, the local backend and
all-or-nothing batch uploads.
"""

from io import BytesIO

import pytest
from PIL import Image

from craftlog.exceptions import ReceiptStorageError
from craftlog.services.receipts import (
    LocalReceiptStorage,
    ReceiptUpload,
    receipt_extension,
    receipt_path,
)

from conftest import RECEIPT_BYTES, FlakyReceiptStorage, run


def png_bytes() -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (4, 4), color="white").save(buffer, format="PNG")
    return buffer.getvalue()


class TestReceiptPaths:
    """Tests for receipt_path and receipt_extension."""

    def test_path_format(self):
        assert receipt_path("owner", "we-1", "exp-1") == "owner/we-1/exp-1.jpg"
        assert receipt_path("owner", "we-1", "exp-1", ".PNG") == "owner/we-1/exp-1.png"

    def test_extension_from_filename(self):
        assert receipt_extension(RECEIPT_BYTES, "scan.PDF") == "pdf"
        assert receipt_extension(RECEIPT_BYTES, "photo.jpeg") == "jpg"

    def test_extension_sniffed_with_pillow(self):
        assert receipt_extension(png_bytes()) == "png"

    def test_pdf_bytes(self):
        assert receipt_extension(b"%PDF-1.7 ...") == "pdf"

    def test_unknown_bytes_fall_back_to_jpg(self):
        assert receipt_extension(RECEIPT_BYTES) == "jpg"


class TestLocalReceiptStorage:
    """Tests for the local filesystem backend."""

    def test_upload_read_delete(self, tmp_path):
        storage = LocalReceiptStorage(tmp_path)
        path = run(storage.upload("owner/we-1/exp-1.jpg", RECEIPT_BYTES))
        assert path == "owner/we-1/exp-1.jpg"
        assert run(storage.read(path)) == RECEIPT_BYTES

        run(storage.delete([path]))
        assert not storage.exists(path)
        # Empty per-entry directories are pruned
        assert not (tmp_path / "owner").exists()

    def test_refuses_to_overwrite(self, tmp_path):
        storage = LocalReceiptStorage(tmp_path)
        run(storage.upload("owner/we-1/exp-1.jpg", RECEIPT_BYTES))
        with pytest.raises(ReceiptStorageError):
            run(storage.upload("owner/we-1/exp-1.jpg", b"other"))
        assert run(storage.read("owner/we-1/exp-1.jpg")) == RECEIPT_BYTES

    def test_rejects_escaping_paths(self, tmp_path):
        storage = LocalReceiptStorage(tmp_path / "root")
        for bad in ("../outside.jpg", "/etc/passwd", ""):
            with pytest.raises(ReceiptStorageError):
                run(storage.upload(bad, RECEIPT_BYTES))

    def test_delete_missing_is_ignored(self, tmp_path):
        storage = LocalReceiptStorage(tmp_path)
        run(storage.delete(["owner/we-1/missing.jpg"]))


class TestUploadBatch:
    """Tests for the all-or-nothing batch upload."""

    def test_uploads_in_order(self, receipts):
        items = [ReceiptUpload(f"o/we/{i}.jpg", RECEIPT_BYTES) for i in range(3)]
        assert run(receipts.upload_batch(items)) == ["o/we/0.jpg", "o/we/1.jpg", "o/we/2.jpg"]
        assert all(receipts.exists(item.path) for item in items)

    def test_failure_rolls_back_uploaded_files(self, tmp_path):
        storage = FlakyReceiptStorage(tmp_path, fail_upload_at=2)
        items = [ReceiptUpload(f"o/we/{i}.jpg", RECEIPT_BYTES) for i in range(3)]

        with pytest.raises(ReceiptStorageError):
            run(storage.upload_batch(items))

        assert storage.deleted == ["o/we/0.jpg", "o/we/1.jpg"]
        assert not any(storage.exists(item.path) for item in items)

    def test_rollback_failure_keeps_original_error(self, tmp_path):
        storage = FlakyReceiptStorage(tmp_path, fail_upload_at=1)
        storage.fail_delete = True
        items = [ReceiptUpload(f"o/we/{i}.jpg", RECEIPT_BYTES) for i in range(2)]

        with pytest.raises(ReceiptStorageError, match="simulated upload failure"):
            run(storage.upload_batch(items))
