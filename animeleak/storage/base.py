from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class AssetMetadata:
    """What the store itself knows about a blob (never the client's claims)."""

    content_type: str
    size: int
    width: int | None = None
    height: int | None = None


class AssetStore(ABC):
    @abstractmethod
    def store(self, content: bytes, content_type: str | None = None) -> str:
        """Save bytes; returns an opaque handle."""
        raise NotImplementedError

    @abstractmethod
    def resolve_read_url(self, handle: str) -> str | None:
        """Short-lived signed URL, or None when the blob is gone."""
        raise NotImplementedError

    @abstractmethod
    def get_metadata(self, handle: str) -> AssetMetadata | None:
        raise NotImplementedError

    @abstractmethod
    def read(self, handle: str) -> bytes | None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, handle: str) -> None:
        raise NotImplementedError
