"""
Filesystem asset store.

Blobs live under storage_base_path/<aa>/<handle> with a JSON sidecar holding the
sniffed content type, size and dimensions. Read URLs carry the handle signed with
itsdangerous and expire after storage_url_ttl_seconds; /files/{token} serves them.
"""
import io
import json
import logging
import os
import re
from functools import lru_cache
from uuid import uuid4

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from PIL import Image as PILImage, UnidentifiedImageError

from animeleak.core.config import settings
from animeleak.storage.base import AssetMetadata, AssetStore

logger = logging.getLogger(__name__)

_HANDLE_RE = re.compile(r"^[0-9a-f]{32}$")


def sniff_image(content: bytes) -> tuple[str | None, int | None, int | None]:
    """(mime, width, height) from the bytes themselves; Nones when Pillow can't tell."""
    try:
        with PILImage.open(io.BytesIO(content)) as img:
            mime = PILImage.MIME.get(img.format or "")
            return mime, img.width, img.height
    except (UnidentifiedImageError, OSError):
        return None, None, None


class LocalAssetStore(AssetStore):
    def __init__(
        self,
        base_path: str | None = None,
        url_secret: str | None = None,
        url_ttl_seconds: int | None = None,
        public_base_url: str | None = None,
    ) -> None:
        self.base_path = base_path or settings.storage_base_path
        self.url_ttl_seconds = url_ttl_seconds or settings.storage_url_ttl_seconds
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")
        self.serializer = URLSafeTimedSerializer(
            url_secret or settings.storage_url_secret,
            salt="asset-read-url",
        )

    def _blob_path(self, handle: str) -> str | None:
        if not _HANDLE_RE.match(handle or ""):
            return None
        return os.path.join(self.base_path, handle[:2], handle)

    def store(self, content: bytes, content_type: str | None = None) -> str:
        handle = uuid4().hex
        path = self._blob_path(handle)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        sniffed, width, height = sniff_image(content)
        # The declared type is ignored; bytes Pillow cannot decode are recorded as opaque.
        meta = {
            "content_type": sniffed or "application/octet-stream",
            "size": len(content),
            "width": width,
            "height": height,
        }
        with open(path, "wb") as f:
            f.write(content)
        with open(f"{path}.json", "w") as f:
            json.dump(meta, f)
        return handle

    def get_metadata(self, handle: str) -> AssetMetadata | None:
        path = self._blob_path(handle)
        if not path or not os.path.isfile(path):
            return None
        try:
            with open(f"{path}.json") as f:
                meta = json.load(f)
        except (OSError, ValueError):
            logger.warning("asset_metadata_unreadable: %s", handle)
            return None
        return AssetMetadata(
            content_type=meta.get("content_type") or "application/octet-stream",
            size=int(meta.get("size") or os.path.getsize(path)),
            width=meta.get("width"),
            height=meta.get("height"),
        )

    def resolve_read_url(self, handle: str) -> str | None:
        path = self._blob_path(handle)
        if not path or not os.path.isfile(path):
            return None
        token = self.serializer.dumps(handle)
        return f"{self.public_base_url}/files/{token}"

    def load_signed(self, token: str) -> str | None:
        """Handle behind a read-URL token, or None when tampered / expired."""
        try:
            handle = self.serializer.loads(token, max_age=self.url_ttl_seconds)
        except (BadSignature, SignatureExpired):
            return None
        return handle if isinstance(handle, str) else None

    def read(self, handle: str) -> bytes | None:
        path = self._blob_path(handle)
        if not path or not os.path.isfile(path):
            return None
        with open(path, "rb") as f:
            return f.read()

    def delete(self, handle: str) -> None:
        path = self._blob_path(handle)
        if not path:
            return
        for p in (path, f"{path}.json"):
            if os.path.exists(p):
                os.remove(p)


@lru_cache(maxsize=1)
def get_asset_store() -> LocalAssetStore:
    return LocalAssetStore()
