"""Google Cloud Storage blob store for the persisted cookie jar."""

import asyncio
import base64
import json
import logging
from functools import partial
from typing import Any, Optional

from google.api_core.exceptions import GoogleAPIError
from google.cloud import storage
from google.oauth2 import service_account

from .base import BlobStore
from src.config import settings
from src.exceptions import CookieLoadError

logger = logging.getLogger(__name__)


def build_gcs_client(
    project_id: Optional[str] = None,
    credentials_base64: Optional[str] = None,
    credentials_file: Optional[str] = None,
) -> storage.Client:
    """Create a storage client from base64 JSON, a key file, or ADC."""
    project_id = project_id or settings.gcp_project_id or None
    credentials_base64 = credentials_base64 or settings.gcp_credentials_base64
    credentials_file = credentials_file or settings.google_application_credentials

    if credentials_base64:
        info = json.loads(base64.b64decode(credentials_base64).decode("utf-8"))
        credentials = service_account.Credentials.from_service_account_info(info)
        logger.info("🔐 Using base64-encoded GCP credentials from environment variable")
        return storage.Client(project=project_id, credentials=credentials)

    if credentials_file:
        logger.info(f"🔐 Using GCP credentials file {credentials_file}")
        return storage.Client.from_service_account_json(credentials_file, project=project_id)

    logger.info("🔐 Using application default GCP credentials")
    return storage.Client(project=project_id)


class GCSBlobStore(BlobStore):
    """GCS implementation of the blob store."""

    name = "GCP"

    def __init__(self, client: Any = None):
        self.client = client or build_gcs_client()

    async def _run(self, func, *args, **kwargs):
        return await asyncio.get_running_loop().run_in_executor(
            None, partial(func, *args, **kwargs)
        )

    async def get(self, bucket: str, key: str) -> bytes:
        blob = self.client.bucket(bucket).blob(key)
        try:
            if not await self._run(blob.exists):
                raise CookieLoadError(f"File {key} does not exist in bucket {bucket}")
            data = await self._run(blob.download_as_bytes)
        except GoogleAPIError as e:
            raise CookieLoadError(f"GCS read of {bucket}/{key} failed: {e}") from e
        logger.info(f"Blob {bucket}/{key} downloaded from GCS ({len(data)} bytes)")
        return data

    async def put(self, bucket: str, key: str, data: bytes) -> None:
        blob = self.client.bucket(bucket).blob(key)
        await self._run(blob.upload_from_string, data, content_type="application/json")
        logger.info(f"Blob {bucket}/{key} uploaded to GCS")

    async def exists(self, bucket: str, key: str) -> bool:
        blob = self.client.bucket(bucket).blob(key)
        return await self._run(blob.exists)
