"""
Admission Module - Black Box Interface

Purpose: Assign requesters to backends
Interface: assign(), lookup()
Hidden: Reuse path, first-fit selection, stale record handling

First-fit over registry order, not least-loaded.
"""

from .admission import AdmissionEngine, Assignment

__all__ = ["AdmissionEngine", "Assignment"]
