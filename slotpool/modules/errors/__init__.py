"""
Errors Module - Black Box Interface

Purpose: Shared error taxonomy for all modules
Interface: SlotPoolError and its subclasses
Hidden: Nothing - the route layer maps status_code to HTTP responses
"""

from .errors import (
    CapacityExhaustedError,
    ConflictError,
    CorruptStateError,
    InvalidInputError,
    NotFoundError,
    SlotPoolError,
)

__all__ = [
    "SlotPoolError",
    "InvalidInputError",
    "NotFoundError",
    "ConflictError",
    "CapacityExhaustedError",
    "CorruptStateError",
]
