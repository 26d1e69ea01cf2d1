"""
Storage Module - Black Box Interface

Purpose: Abstract all data persistence
Interface: StorageModule.connect(), disconnect(), ping(), KeySpace
Hidden: Redis specifics, connection pooling, key naming

Can be replaced with any storage backend without affecting other modules.
"""

from .keys import KeySpace
from .storage import StorageModule

__all__ = ["StorageModule", "KeySpace"]
