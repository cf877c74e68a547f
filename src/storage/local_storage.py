"""Filesystem blob store: a bucket is a directory, a key is a file in it."""

import logging
import os

from .base import BlobStore
from src.exceptions import CookieLoadError

logger = logging.getLogger(__name__)


class LocalBlobStore(BlobStore):

    name = "local storage"

    def __init__(self, root_dir: str = "."):
        self.root_dir = root_dir

    def _path(self, bucket: str, key: str) -> str:
        return os.path.join(self.root_dir, bucket, key)

    async def get(self, bucket: str, key: str) -> bytes:
        path = self._path(bucket, key)
        if not os.path.isfile(path):
            raise CookieLoadError(f"File {key} does not exist in bucket {bucket}")
        with open(path, "rb") as f:
            return f.read()

    async def put(self, bucket: str, key: str, data: bytes) -> None:
        path = self._path(bucket, key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)
        logger.info(f"Blob written to {path}")

    async def exists(self, bucket: str, key: str) -> bool:
        return os.path.isfile(self._path(bucket, key))
