"""
Models Module - Black Box Interface

Purpose: Shared data models passed between modules and the HTTP layer
Interface: Backend, SessionRecord, AuditEvent, AuditEventType, request/response models
Hidden: Field validation and schema defaulting
"""

from .api import (
    AddBackendRequest,
    AssignSessionRequest,
    AssignmentResponse,
    AuditLogResponse,
    BackendListResponse,
    BackendStatusResponse,
    BulkTerminationResponse,
    MessageResponse,
    ReconcileResponse,
    SetEnabledRequest,
    TerminationResponse,
    UpdateBackendRequest,
)
from .domain import (
    BACKEND_SCHEMA_VERSION,
    AuditEvent,
    AuditEventType,
    Backend,
    SessionRecord,
)

__all__ = [
    "BACKEND_SCHEMA_VERSION",
    "Backend",
    "SessionRecord",
    "AuditEvent",
    "AuditEventType",
    "AssignSessionRequest",
    "AddBackendRequest",
    "UpdateBackendRequest",
    "SetEnabledRequest",
    "AssignmentResponse",
    "TerminationResponse",
    "BulkTerminationResponse",
    "ReconcileResponse",
    "BackendListResponse",
    "BackendStatusResponse",
    "AuditLogResponse",
    "MessageResponse",
]
