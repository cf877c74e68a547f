"""Storage factory for creating blob store instances based on environment."""

import logging
from enum import Enum
from typing import Optional

from .base import BlobStore
from .cookies import CookiesLoader
from .gcs_storage import GCSBlobStore
from .local_storage import LocalBlobStore
from .mock_storage import MockBlobStore
from ..config import settings
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class StorageType(str, Enum):
    """Storage type enumeration."""
    GCS = "gcs"
    LOCAL = "local"
    MOCK = "mock"


class StorageFactory:
    """Factory for creating blob store instances."""

    @staticmethod
    def create_storage(storage_type: Optional[str] = None) -> BlobStore:
        """
        Create a blob store based on the specified type.

        Args:
            storage_type: Type of storage to create. If None, uses settings.storage_type

        Returns:
            BlobStore instance

        Raises:
            ConfigurationError: If storage_type is not supported or misconfigured
        """
        if storage_type is None:
            storage_type = settings.storage_type

        storage_type = storage_type.lower()

        logger.info(f"Creating storage instance of type: {storage_type}")

        if storage_type == StorageType.MOCK:
            return MockBlobStore()

        elif storage_type == StorageType.LOCAL:
            logger.info(f"Using LocalBlobStore rooted at {settings.local_storage_dir}")
            return LocalBlobStore(settings.local_storage_dir)

        elif storage_type == StorageType.GCS:
            settings.validate_required("gcp_project_id", context="GCS storage")
            logger.info("Using GCSBlobStore for production")
            return GCSBlobStore()

        raise ConfigurationError(
            f"Unsupported storage type: {storage_type}. "
            f"Supported types: {StorageFactory.get_available_storage_types()}"
        )

    @staticmethod
    def create_cookies_loader(storage_type: Optional[str] = None) -> CookiesLoader:
        """Create a loader for the configured cookie jar blob."""
        settings.validate_required("gcs_bucket_name", context="cookie loading")
        store = StorageFactory.create_storage(storage_type)
        return CookiesLoader(store, settings.gcs_bucket_name, settings.gcs_cookies_filename)

    @staticmethod
    def get_available_storage_types() -> list[str]:
        """Get list of available storage types."""
        return [t.value for t in StorageType]
