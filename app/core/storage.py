# app/core/storage.py
#
# Invoice file storage. The ledger only needs url/name/size back;
# where the bytes live is up to the backend.

import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone

import requests

from app.core.config import settings
from app.core.exceptions import StorageError


INVOICE_FOLDER = "invoices"
EXTENSION_RE = re.compile(r"[a-z0-9]{1,10}")


@dataclass(frozen=True)
class InvoiceFile:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class StoredFile:
    url: str
    path: str
    name: str
    size: int


def build_invoice_path(movement_id: int, filename: str) -> str:
    timestamp = re.sub(r"[:.+]", "-", datetime.now(timezone.utc).isoformat())
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    # Only a plain suffix; anything else could add path segments
    if not EXTENSION_RE.fullmatch(extension):
        extension = "pdf"
    return f"{INVOICE_FOLDER}/{movement_id}_{timestamp}.{extension}"


class InvoiceStorage:
    def save(self, movement_id: int, upload: InvoiceFile) -> StoredFile:
        raise NotImplementedError


class LocalInvoiceStorage(InvoiceStorage):
    def __init__(self, root_dir: str, base_url: str = "/files"):
        self.root_dir = root_dir
        self.base_url = base_url.rstrip("/")

    def save(self, movement_id: int, upload: InvoiceFile) -> StoredFile:
        path = build_invoice_path(movement_id, upload.filename)
        target = os.path.join(self.root_dir, path)

        try:
            os.makedirs(os.path.dirname(target), exist_ok=True)
            with open(target, "wb") as fh:
                fh.write(upload.content)
        except OSError as exc:
            raise StorageError(f"Failed to write invoice file: {exc}") from exc

        return StoredFile(
            url=f"{self.base_url}/{path}",
            path=path,
            name=upload.filename,
            size=len(upload.content),
        )


class HttpInvoiceStorage(InvoiceStorage):
    """Object storage over its REST API (bucket-based, bearer key)."""

    def __init__(self, base_url: str, api_key: str, bucket: str, timeout: float = 30):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self.timeout = timeout

    def save(self, movement_id: int, upload: InvoiceFile) -> StoredFile:
        path = build_invoice_path(movement_id, upload.filename)
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{path}"

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": upload.content_type,
            "Cache-Control": "3600",
            "x-upsert": "false",
        }

        try:
            response = requests.post(url, data=upload.content, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise StorageError(f"Invoice upload failed: {exc}") from exc

        if response.status_code >= 400:
            raise StorageError(f"Invoice upload failed: {response.text}")

        return StoredFile(
            url=f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}",
            path=path,
            name=upload.filename,
            size=len(upload.content),
        )


def get_invoice_storage() -> InvoiceStorage:
    if settings.STORAGE_BACKEND == "http":
        if not settings.STORAGE_URL or not settings.STORAGE_API_KEY:
            raise RuntimeError("STORAGE_URL and STORAGE_API_KEY are required for the http storage backend")
        return HttpInvoiceStorage(
            base_url=settings.STORAGE_URL,
            api_key=settings.STORAGE_API_KEY,
            bucket=settings.STORAGE_BUCKET,
        )

    return LocalInvoiceStorage(settings.LOCAL_STORAGE_DIR)
