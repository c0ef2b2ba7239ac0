"""
Memory

Context assembly: recent messages verbatim, older history summarized.
"""

from .manager import MemoryManager, MemoryMode
from .summarizer import Summarizer

__all__ = ["MemoryManager", "MemoryMode", "Summarizer"]
