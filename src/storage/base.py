"""Base blob store interface for the persisted cookie jar."""

from abc import ABC, abstractmethod


class BlobStore(ABC):
    """Abstract key/value blob store addressed by bucket and key."""

    name: str = "storage"

    @abstractmethod
    async def get(self, bucket: str, key: str) -> bytes:
        """Read a blob. Raises CookieLoadError if it does not exist."""
        pass

    @abstractmethod
    async def put(self, bucket: str, key: str, data: bytes) -> None:
        """Write a blob, replacing any previous content."""
        pass

    @abstractmethod
    async def exists(self, bucket: str, key: str) -> bool:
        """Check whether a blob exists."""
        pass
