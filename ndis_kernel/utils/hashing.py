"""
Deterministic hashing for the audit chain.

Payloads are canonicalized (sorted keys, no whitespace, fixed encodings for
Decimal/datetime/UUID/Enum) before hashing so that the same logical payload
always yields the same digest.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

GENESIS_MARKER = "GENESIS"


def _json_serializer(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Decimal):
        # 58.140 and 58.14 hash identically
        return format(obj.normalize(), "f")
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """Deterministic JSON: sorted keys, compact separators."""
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def to_json_safe(data: Any) -> Any:
    """Round-trip through canonical JSON so the value stores in a JSON column."""
    return json.loads(canonicalize_json(data))


def hash_payload(payload: dict) -> str:
    """SHA-256 hex digest of the canonical JSON payload."""
    return hashlib.sha256(canonicalize_json(payload).encode("utf-8")).hexdigest()


def hash_audit_event(
    entity_type: str,
    entity_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Chain hash for one audit event.

    hash = sha256(entity_type | entity_id | action | payload_hash | prev_hash)
    where prev_hash is GENESIS for a tenant's first event.
    """
    data = "|".join(
        [
            entity_type,
            str(entity_id),
            action,
            payload_hash,
            prev_hash or GENESIS_MARKER,
        ]
    )
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
