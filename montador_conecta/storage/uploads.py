import os
import uuid
from datetime import datetime, timezone
from typing import Optional

from slugify import slugify

from ..config import settings
from .blob_provider import BlobStorageProvider
from .local_provider import LocalStorageProvider
from .provider import StorageProvider


def get_upload_provider() -> StorageProvider:
    """Provider for new uploads, chosen by STORAGE_PROVIDER."""
    if settings.storage_provider == "blob":
        return BlobStorageProvider()
    return LocalStorageProvider()


def provider_for(name: Optional[str]) -> StorageProvider:
    """Provider that holds an existing file, from the name stored on its row."""
    if name == "blob":
        return BlobStorageProvider()
    return LocalStorageProvider()


def canonical_key(service_id: uuid.UUID, original_name: str) -> str:
    now = datetime.now(timezone.utc)
    base, ext = os.path.splitext(original_name)
    safe_name = slugify(base) or "file"
    # Short random suffix so re-uploading the same name never overwrites
    return f"services/{service_id}/{now:%Y-%m-%d}_{uuid.uuid4().hex[:8]}_{safe_name}{ext.lower()}"


def detect_file_type(content_type: Optional[str], file_name: str) -> str:
    ct = (content_type or "").lower()
    ext = os.path.splitext(file_name)[1].lower()
    if ct == "application/pdf" or ext == ".pdf":
        return "pdf"
    if ct.startswith("image/") or ext in (".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic"):
        return "image"
    if ct.startswith("video/") or ext in (".mp4", ".mov", ".avi", ".webm", ".mkv"):
        return "video"
    return "other"
