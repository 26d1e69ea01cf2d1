"""
Registry Module - Black Box Interface

Purpose: CRUD store of backend descriptors
Interface: add(), update(), set_enabled(), remove(), get(), list(), exists(),
           ensure_default_backend()
Hidden: Redis hash layout, descriptor validation and defaulting

Invalid descriptors are rejected before they reach the store; anything
malformed found in the store is treated as absent.
"""

from .bootstrap import ensure_default_backend
from .registry import BackendRegistry

__all__ = ["BackendRegistry", "ensure_default_backend"]
