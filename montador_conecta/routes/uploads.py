import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse, RedirectResponse

from ..auth.security import get_current_user
from ..crud import DatabaseStorage, get_storage
from ..storage.local_provider import LocalStorageProvider
from ..storage.uploads import provider_for


router = APIRouter(prefix="/api/uploads", tags=["uploads"])
log = structlog.get_logger(__name__)


@router.get("/{key:path}")
def serve_upload(key: str, storage: DatabaseStorage = Depends(get_storage), _=Depends(get_current_user)):
    """Serve a local upload, or redirect to a short-lived blob URL."""
    attachment = storage.get_attachment_by_key(key)
    if not attachment:
        raise HTTPException(status_code=404, detail="File not found")
    provider = provider_for(attachment.provider)

    if isinstance(provider, LocalStorageProvider):
        try:
            path = provider.get_path(key)
        except ValueError:
            log.warning("upload_path_rejected", key=key)
            raise HTTPException(status_code=404, detail="File not found")
        if not path.exists():
            raise HTTPException(status_code=404, detail="File not found")
        return FileResponse(
            path=str(path),
            media_type=attachment.content_type or "application/octet-stream",
            filename=attachment.file_name,
        )

    url = provider.get_download_url(key, expires_s=900)
    if not url:
        raise HTTPException(status_code=404, detail="File not found")
    return RedirectResponse(url=url)
