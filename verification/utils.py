import json
import os
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from config import SUPPORTED_IMAGE_EXTS

JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def extract_json_object(text: Optional[str], fallback_key: str) -> Dict[str, Any]:
    """
    Pull the JSON object out of free model text.

    Takes the span from the first "{" to the last "}". Returns {} when there is
    no such span and {fallback_key: text} when the span is not valid JSON.
    """
    if not text:
        return {}
    match = JSON_OBJECT_RE.search(text)
    if not match:
        return {}
    try:
        parsed = json.loads(match.group())
    except ValueError:
        return {fallback_key: text}
    return parsed if isinstance(parsed, dict) else {}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a Postgres/ISO-8601 timestamp; naive values are taken as UTC"""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def get_file_extension(filename: str) -> str:
    """Get file extension from filename"""
    return os.path.splitext(filename or "")[1].lower()


def is_image_file(filename: str) -> bool:
    """Check if file has a supported image extension"""
    return get_file_extension(filename) in SUPPORTED_IMAGE_EXTS
