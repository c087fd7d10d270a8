from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from coursework.core.deps import get_blob_store
from coursework.services.blob_store import BlobStore, BlobStoreError, verify_download_token

router = APIRouter()


@router.get("/{bucket}/{path:path}")
def download(bucket: str, path: str, token: str, blobs: BlobStore = Depends(get_blob_store)):
    """Serve a blob from the filesystem store behind a signed, expiring URL."""
    if not verify_download_token(token, bucket, path):
        raise HTTPException(status_code=403, detail="Invalid or expired link")

    open_path = getattr(blobs, "open_path", None)
    if open_path is None:
        raise HTTPException(status_code=404, detail="Downloads are served by the object store")

    try:
        full_path = open_path(bucket, path)
    except BlobStoreError:
        raise HTTPException(status_code=404, detail="File not found")

    return FileResponse(full_path, filename=path.rsplit("/", 1)[-1].split("_", 1)[-1])
