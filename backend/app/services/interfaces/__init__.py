"""
Service interfaces for dependency inversion.
Allows swapping the storage implementation without changing lifecycle logic.
"""

from .store import RecordStore

__all__ = ['RecordStore']
