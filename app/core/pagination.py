import base64
import binascii
import json
from datetime import datetime

from app.core.hashing import ensure_utc


def encode_cursor(published_at: datetime, item_id: int) -> str:
    """
    Encode a feed position as an opaque cursor.

    Args:
        published_at: Canonical published time of the last item on the page
        item_id: ID of that item, the tie-breaker within one hour bucket

    Returns:
        URL-safe base64 cursor string
    """
    payload = json.dumps({"p": ensure_utc(published_at).isoformat(), "i": item_id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> tuple[datetime, int]:
    """
    Decode a cursor produced by ``encode_cursor``.

    Raises:
        ValueError: If the cursor is malformed
    """
    try:
        data = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")).decode("utf-8"))
        return ensure_utc(datetime.fromisoformat(data["p"])), int(data["i"])
    except (binascii.Error, UnicodeError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid cursor format: {e}") from e
