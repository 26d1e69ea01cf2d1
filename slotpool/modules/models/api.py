"""
Request and response models for the HTTP layer.

Request models are deliberately loose: field rules (non-empty strings,
positive capacity) are enforced by the registry so that the same
InvalidInputError is raised whether a caller goes through HTTP or uses
the modules directly.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

# Request Models (API Input)


class AssignSessionRequest(BaseModel):
    """Request a session for a requester."""

    requester_id: Optional[str] = Field(None, description="Requester (user) identifier")


class AddBackendRequest(BaseModel):
    """Register a new backend."""

    id: Optional[str] = Field(None, description="Unique backend identifier")
    credential: Optional[str] = Field(None, description="Credential handed to callers")
    target_id: Optional[str] = Field(None, description="Target/character id handed to callers")
    capacity: Any = Field(default=5, description="Maximum concurrent sessions")
    session_ttl: Optional[Any] = Field(None, description="Session TTL override in seconds")


class UpdateBackendRequest(BaseModel):
    """Partial update of a backend. Unset fields are preserved."""

    credential: Optional[str] = None
    target_id: Optional[str] = None
    capacity: Optional[Any] = None
    session_ttl: Optional[Any] = None


class SetEnabledRequest(BaseModel):
    """Enable or disable a backend."""

    enabled: bool


# Response Models (API Output)


class AssignmentResponse(BaseModel):
    """Backend bound to a requester."""

    backend_id: str
    credential: str
    target_id: str
    expires_at: datetime
    reused: bool


class TerminationResponse(BaseModel):
    requester_id: str
    ended: bool
    message: str


class BulkTerminationResponse(BaseModel):
    backend_id: str
    cleared: int
    message: str


class ReconcileResponse(BaseModel):
    backend_id: str
    pruned: int
    active_count: int


class BackendStatusResponse(BaseModel):
    """Descriptor joined with live counters."""

    id: str
    credential: str
    target_id: str
    capacity: int
    enabled: bool
    session_ttl: Optional[int] = None
    active_count: int
    closed_count: int
    available_slots: int
    active_users: List[str]


class BackendListResponse(BaseModel):
    backends: List[dict]
    count: int


class AuditLogResponse(BaseModel):
    events: List[dict]
    count: int


class MessageResponse(BaseModel):
    message: str
