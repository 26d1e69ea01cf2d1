"""
Monitoring Module - Black Box Interface

Purpose: Per-backend view of descriptors joined with live counters
Interface: snapshot()
Hidden: Counter reads, credential masking
"""

from .monitoring import BackendSnapshot, MonitoringModule, mask_credential

__all__ = ["MonitoringModule", "BackendSnapshot", "mask_credential"]
