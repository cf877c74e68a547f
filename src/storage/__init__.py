"""Storage module for the persisted cookie jar."""

from .base import BlobStore
from .cookies import CookiesLoader, parse_cookie_jar, transform_cookie
from .factory import StorageFactory, StorageType
from .local_storage import LocalBlobStore
from .mock_storage import MockBlobStore

__all__ = [
    "BlobStore",
    "CookiesLoader",
    "LocalBlobStore",
    "MockBlobStore",
    "StorageFactory",
    "StorageType",
    "parse_cookie_jar",
    "transform_cookie",
]
