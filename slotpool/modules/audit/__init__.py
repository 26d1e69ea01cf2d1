"""
Audit Module - Black Box Interface

Purpose: Bounded, newest-first trail of lifecycle events
Interface: record(), read(), clear()
Hidden: Redis list storage, trimming, corrupt entry handling

Recording never fails the surrounding operation.
"""

from .audit import AuditLog

__all__ = ["AuditLog"]
