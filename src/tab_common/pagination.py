"""Opaque cursor utilities shared by all history listings.

Event ids are UUIDs (not sequential), so the cursor is composite:
  {"ts": "<created_at ISO>", "id": "<row id>"}
Encoded as a Base64 JSON string. Listings order by (created_at DESC, id DESC).
"""

import base64
import json
from datetime import datetime


def cursor_encode(created_at: datetime, row_id: str) -> str:
    """Encode the last row of a page into an opaque cursor."""
    payload = {"ts": created_at.isoformat(), "id": row_id}
    return base64.b64encode(json.dumps(payload).encode()).decode()


def cursor_decode(cursor: str | None) -> tuple[datetime | None, str | None]:
    """Decode a cursor -> (created_at, id), or (None, None) when absent or malformed."""
    if cursor is None:
        return None, None
    try:
        data = json.loads(base64.b64decode(cursor.encode()).decode())
        return datetime.fromisoformat(data["ts"]), str(data["id"])
    except Exception:
        return None, None
