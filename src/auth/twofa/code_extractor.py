"""Pull Slack confirmation codes out of Gmail API message payloads."""

import base64
import binascii
import logging
from typing import Any, Dict, List, Optional

from src.constants import SLACK_CODE_REGEX

logger = logging.getLogger(__name__)


def decode_base64url(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError) as e:
        logger.warning(f"Could not decode message part: {e}")
        return ""


def get_email_body(payload: Dict[str, Any]) -> str:
    """Concatenate every text body found in a (possibly nested) MIME payload."""
    chunks: List[str] = []

    def collect(part: Dict[str, Any]) -> None:
        data = (part.get("body") or {}).get("data")
        if data:
            chunks.append(decode_base64url(data))
        for child in part.get("parts") or []:
            collect(child)

    collect(payload or {})
    return "".join(chunks)


def get_subject(payload: Dict[str, Any]) -> str:
    for header in (payload or {}).get("headers") or []:
        if header.get("name", "").lower() == "subject":
            return header.get("value", "")
    return ""


def extract_code(text: str) -> Optional[str]:
    """Return the first ``XXX-XX[X]`` code in ``text``."""
    match = SLACK_CODE_REGEX.search(text or "")
    return match.group(1) if match else None


def extract_code_from_message(message: Dict[str, Any]) -> Optional[str]:
    """Search the body first, then the subject line."""
    payload = message.get("payload") or {}
    body = get_email_body(payload)
    if body:
        logger.debug(f"Email body sample: {body[:200]}...")
    else:
        logger.warning("⚠️ No email body found")
    return extract_code(body) or extract_code(get_subject(payload))
