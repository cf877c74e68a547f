"""In-memory blob store for testing and development."""

import logging
from typing import Dict, Tuple

from .base import BlobStore
from src.exceptions import CookieLoadError

logger = logging.getLogger(__name__)


class MockBlobStore(BlobStore):
    """Mock implementation of the blob store kept in a dict."""

    name = "mock storage"

    def __init__(self):
        self.blobs: Dict[Tuple[str, str], bytes] = {}

    async def get(self, bucket: str, key: str) -> bytes:
        if (bucket, key) not in self.blobs:
            raise CookieLoadError(f"File {key} does not exist in bucket {bucket}")
        logger.info(f"Blob {bucket}/{key} retrieved from mock storage")
        return self.blobs[(bucket, key)]

    async def put(self, bucket: str, key: str, data: bytes) -> None:
        self.blobs[(bucket, key)] = data
        logger.info(f"Blob {bucket}/{key} stored in mock storage ({len(data)} bytes)")

    async def exists(self, bucket: str, key: str) -> bool:
        return (bucket, key) in self.blobs
