"""
Lifecycle Module - Black Box Interface

Purpose: End sessions and keep per-backend accounting in step
Interface: terminate(), terminate_all_for_backend(), reconcile()
Hidden: Counter floor handling, batched deletes, stale member pruning
"""

from .lifecycle import BulkTermination, LifecycleManager, Reconciliation, Termination

__all__ = ["LifecycleManager", "Termination", "BulkTermination", "Reconciliation"]
