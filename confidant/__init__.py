"""
Confidant

Coordination assistant that answers questions about multi-party email
threads without disclosing anything a present participant was not
originally entitled to see.

Philosophy:
- Visibility is a subset test: every current participant must have been
  in the original audience
- Narrowing is never an error, it is disclosed in the response
- Older history is summarized, never silently dropped
- Tool use is bounded and auditable

Usage:
    from confidant.access import AccessTracker
    from confidant.facts import FactStore
    from confidant.memory import MemoryManager, Summarizer
    from confidant.query import QueryOrchestrator, QueryContext
"""

__version__ = "0.1.0"
