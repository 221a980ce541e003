from fastapi import APIRouter, Depends, HTTPException, Response

from animeleak.api.deps import get_store
from animeleak.storage.base import AssetStore

router = APIRouter(tags=["files"])


@router.get("/files/{token}")
def read_file(token: str, store: AssetStore = Depends(get_store)):
    """Serve a blob behind a signed, time-limited read URL."""
    handle = store.load_signed(token) if hasattr(store, "load_signed") else None
    if not handle:
        raise HTTPException(status_code=404, detail="Not found")
    content = store.read(handle)
    if content is None:
        raise HTTPException(status_code=404, detail="Not found")
    meta = store.get_metadata(handle)
    media_type = meta.content_type if meta else "application/octet-stream"
    return Response(content=content, media_type=media_type, headers={"Cache-Control": "private, max-age=300"})
