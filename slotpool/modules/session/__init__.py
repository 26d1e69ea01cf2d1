"""
Session Module - Black Box Interface

Purpose: Session records and per-backend accounting
Interface: load(), create(), claim(), delete(), counters and user-set primitives
Hidden: Redis keys, TTL handling, record serialization

Every method is a short, independent round trip to Redis. Compound
sequences (check capacity then increment) are not atomic unless the
caller uses claim() with a script.
"""

from .session import BackendCounters, SessionStore

__all__ = ["SessionStore", "BackendCounters"]
