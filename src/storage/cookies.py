"""Load the persisted cookie jar and turn it into replayable cookies."""

import json
import logging
import math
from typing import Any, Dict, List

from pydantic import ValidationError

from .base import BlobStore
from src.exceptions import CookieLoadError
from src.models import CookieRecord, RawCookie, SameSiteMode

logger = logging.getLogger(__name__)

SAME_SITE_MAP = {
    "strict": SameSiteMode.STRICT,
    "lax": SameSiteMode.LAX,
    "no_restriction": SameSiteMode.NONE,
    "unspecified": SameSiteMode.LAX,
}


def transform_cookie(raw: Dict[str, Any]) -> CookieRecord:
    """Map an exported browser cookie onto a Playwright cookie.

    ``expirationDate`` is floored to whole seconds; session cookies
    (no expiration) get no ``expires`` at all.
    """
    cookie = raw if isinstance(raw, RawCookie) else RawCookie.model_validate(raw)
    same_site = SAME_SITE_MAP.get((cookie.same_site or "").lower(), SameSiteMode.LAX)
    expires = None
    if cookie.expiration_date:
        expires = math.floor(cookie.expiration_date)

    return CookieRecord(
        name=cookie.name,
        value=cookie.value,
        domain=cookie.domain,
        path=cookie.path,
        expires=expires,
        http_only=cookie.http_only,
        secure=cookie.secure,
        same_site=same_site,
    )


def parse_cookie_jar(data: bytes) -> List[CookieRecord]:
    raw_cookies = json.loads(data)
    if not isinstance(raw_cookies, list):
        raise ValueError("cookie file must contain a JSON array")
    return [transform_cookie(raw) for raw in raw_cookies]


class CookiesLoader:
    """Async callable returning the cookie jar stored at ``bucket/key``."""

    def __init__(self, store: BlobStore, bucket: str, key: str):
        self.store = store
        self.bucket = bucket
        self.key = key

    async def __call__(self) -> List[CookieRecord]:
        try:
            data = await self.store.get(self.bucket, self.key)
            cookies = parse_cookie_jar(data)
        except (CookieLoadError, ValueError, ValidationError) as e:
            raise CookieLoadError(f"Failed to load cookies from {self.store.name}: {e}") from e

        logger.info(f"🍪 Loaded {len(cookies)} cookies from {self.bucket}/{self.key}")
        return cookies
