"""
SlotPool domain models.

These models define the records kept in Redis. They are validated on
the way in and on the way out, so a record that does not parse is
treated as corrupt by whichever module read it.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

BACKEND_SCHEMA_VERSION = 1

# Field names used by descriptors written before schema versioning
_LEGACY_FIELDS = {
    "apiKey": "credential",
    "characterId": "target_id",
    "maxSessions": "capacity",
    "ttl": "session_ttl",
}


class AuditEventType(str, Enum):
    """Types of audit log entries."""

    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"
    BULK_SESSION_ENDED = "bulk_session_ended"
    SESSION_DISCARDED = "session_discarded"
    BACKEND_ADDED = "backend_added"
    BACKEND_UPDATED = "backend_updated"
    BACKEND_ENABLED = "backend_enabled"
    BACKEND_DISABLED = "backend_disabled"
    BACKEND_REMOVED = "backend_removed"
    BACKEND_RECONCILED = "backend_reconciled"
    CORRUPT_DATA = "corrupt_data"


class Backend(BaseModel):
    """A registered credential with a bounded concurrent-session capacity."""

    model_config = ConfigDict(extra="ignore")

    schema_version: int = BACKEND_SCHEMA_VERSION
    id: str = Field(..., min_length=1, max_length=128)
    credential: str = Field(..., min_length=1)
    target_id: str = Field(..., min_length=1)
    capacity: int = Field(..., gt=0)
    enabled: bool = True
    session_ttl: Optional[int] = Field(None, gt=0)

    @field_validator("capacity", "session_ttl", mode="before")
    @classmethod
    def reject_bool(cls, v: Any) -> Any:
        """Booleans would otherwise coerce to 0 or 1."""
        if isinstance(v, bool):
            raise ValueError("must be an integer, not a boolean")
        return v

    @field_validator("id", "credential", "target_id")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject whitespace-only strings."""
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @classmethod
    def from_stored(cls, backend_id: str, raw: Any) -> "Backend":
        """
        Decode a descriptor read from the registry hash.

        Applies all defaulting in one place: legacy field names are
        mapped, a missing ``enabled`` flag means enabled, and the hash
        field name is authoritative for the id.

        Raises:
            ValueError: If the payload is not valid JSON
            pydantic.ValidationError: If the descriptor is structurally invalid
        """
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        payload = json.loads(raw)
        if not isinstance(payload, dict):
            raise ValueError("descriptor is not a JSON object")

        if "schema_version" not in payload:
            for legacy, current in _LEGACY_FIELDS.items():
                if legacy in payload and current not in payload:
                    payload[current] = payload.pop(legacy)

        payload["id"] = backend_id
        return cls.model_validate(payload)

    def to_stored(self) -> str:
        """Serialize for the registry hash."""
        return self.model_dump_json()


class SessionRecord(BaseModel):
    """A time-bounded binding of a requester to a backend."""

    model_config = ConfigDict(extra="ignore")

    requester_id: str = Field(..., min_length=1)
    backend_id: str = Field(..., min_length=1)
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at <= (now or datetime.now(UTC))


class AuditEvent(BaseModel):
    """One entry of the audit log."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    type: str
    requester_id: Optional[str] = None
    backend_id: Optional[str] = None
    message: str = ""
    count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
