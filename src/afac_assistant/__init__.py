"""
AFAC assistant: rule-based farming chatbot that learns response patterns from its own history.

Exports the engine, the application wrapper and the persistence stores.
"""

from .app import AssistantApp
from .engine import ResponseEngine
from .intents import IntentClassifier
from .models import LearnedPattern, UserIdentity
from .record_store import InMemoryRecordStore, StoreError, SupabaseRecordStore

__all__ = [
    "AssistantApp",
    "ResponseEngine",
    "IntentClassifier",
    "LearnedPattern",
    "UserIdentity",
    "InMemoryRecordStore",
    "StoreError",
    "SupabaseRecordStore",
]
