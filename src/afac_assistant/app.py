"""
Application wiring: builds the store, engine and learning scheduler from Settings
and owns their lifecycle.
"""

from __future__ import annotations

import logging
import random
from typing import Optional

from .config import Settings
from .engine import ResponseEngine
from .models import LearningStats, UserIdentity
from .pattern_miner import PatternMiner
from .pattern_store import ConversationLog, PatternStore
from .record_store import InMemoryRecordStore, RecordStore, SupabaseRecordStore
from .scheduler import LearningScheduler
from .site_data import SiteDataCache, default_site_data

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = (
    "I'm having trouble connecting right now. Please try again or contact our support "
    "team at Artificialfarm24@gmail.com."
)


def build_store(settings: Settings) -> RecordStore:
    if settings.has_supabase:
        return SupabaseRecordStore(
            settings.supabase_url,
            settings.supabase_key,
            timeout=settings.request_timeout,
        )
    logger.warning("SUPABASE_URL / SUPABASE_KEY not set; using the in-memory demo store.")
    return demo_store()


def demo_store() -> InMemoryRecordStore:
    """In-memory store pre-filled with the built-in site content."""
    snapshot = default_site_data()
    return InMemoryRecordStore(
        tables={
            "courses": snapshot.courses,
            "success_stories": snapshot.success_stories,
            "testimonials": snapshot.testimonials,
        }
    )


class AssistantApp:
    """
    Lifecycle owner for the chatbot: `start()` launches the learning scheduler,
    `stop()` cancels it and drains pending writes. Usable as a context manager.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[RecordStore] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.store = store or build_store(self.settings)

        self.pattern_store = PatternStore(self.store)
        self.conversation_log = ConversationLog(self.store)
        self.engine = ResponseEngine(
            self.store,
            site_cache=SiteDataCache(self.store, ttl_seconds=self.settings.site_data_ttl),
            pattern_store=self.pattern_store,
            conversation_log=self.conversation_log,
            rng=rng,
        )
        self.miner = PatternMiner(self.store, self.pattern_store, self.conversation_log)
        self.scheduler = LearningScheduler(
            self.miner,
            self.pattern_store,
            interval_seconds=self.settings.learning_interval,
            max_idle_days=self.settings.pattern_max_idle_days,
            confidence_floor=self.settings.pattern_confidence_floor,
        )

    def start(self) -> "AssistantApp":
        self.scheduler.start()
        return self

    def stop(self) -> None:
        self.scheduler.stop()
        self.engine.close()

    def __enter__(self) -> "AssistantApp":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def respond(self, message: str, user: Optional[UserIdentity] = None) -> str:
        """
        Presentation-boundary call: any failure inside the engine becomes FALLBACK_MESSAGE.
        """
        try:
            response = self.engine.get_response(message, user)
        except Exception:
            logger.exception("Chatbot failed to answer %r", message)
            return FALLBACK_MESSAGE
        return response or FALLBACK_MESSAGE

    def learning_stats(self) -> LearningStats:
        return self.engine.get_learning_stats()
