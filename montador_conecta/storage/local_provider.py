"""
Local filesystem storage provider for development.
Files are written under LOCAL_STORAGE_DIR and served back by the API.
"""
from pathlib import Path
from typing import Optional, BinaryIO, Union
from urllib.parse import quote

import structlog

from ..config import settings
from .provider import StorageProvider


log = structlog.get_logger(__name__)


class LocalStorageProvider(StorageProvider):
    name = "local"

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.local_storage_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def get_path(self, key: str) -> Path:
        """Filesystem path for ``key``; refuses keys escaping the base dir."""
        clean_key = key.lstrip("/").replace("\\", "/")
        path = (self.base_dir / clean_key).resolve()
        if not str(path).startswith(str(self.base_dir.resolve())):
            raise ValueError("Invalid storage key")
        return path

    def copy_in(self, src: Union[bytes, BinaryIO], key: str, content_type: Optional[str] = None) -> None:
        path = self.get_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            if hasattr(src, "read"):
                f.write(src.read())
            else:
                f.write(src)
        log.info("local_file_saved", key=key, path=str(path))

    def get_download_url(self, key: str, expires_s: int) -> Optional[str]:
        if self.exists(key):
            return f"{settings.public_base_url}/api/uploads/{quote(key.lstrip('/'))}"
        return None

    def exists(self, key: str) -> bool:
        try:
            return self.get_path(key).exists()
        except ValueError:
            return False

    def delete(self, key: str) -> None:
        path = self.get_path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            log.warning("local_file_delete_failed", key=key, error=str(e))
