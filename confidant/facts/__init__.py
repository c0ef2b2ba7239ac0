"""
Fact Store

Structured storage for extracted speech acts.
"""

from .store import FactStore, StoredFact

__all__ = ["FactStore", "StoredFact"]
