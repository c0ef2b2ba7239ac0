"""
Access Control

Per-message audience tracking and subset-based visibility filtering.
"""

from .tracker import AccessTracker

__all__ = ["AccessTracker"]
