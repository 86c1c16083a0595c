"""
Conversational response engine: learned-pattern lookup first, keyword intents second.
"""

from __future__ import annotations

import logging
import random
import re
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional, Sequence

from .intents import IntentClassifier
from .models import (
    TOPIC_PATTERN,
    ConversationRecord,
    LearnedPattern,
    LearningStats,
    UserContext,
    UserIdentity,
)
from .pattern_store import HIGH_CONFIDENCE, RETRIEVAL_CONFIDENCE, ConversationLog, PatternStore
from .record_store import RecordStore
from .responses import ResponseBuilder
from .site_data import SiteDataCache
from .text_matching import normalize, similarity
from .user_context import UserContextLoader

logger = logging.getLogger(__name__)

PARTIAL_MATCH_SIMILARITY = 0.7
PARTIAL_MATCH_CONFIDENCE = 0.7

_THERE_PATTERN = re.compile(r"\bthere\b")


def match_learned_pattern(message: str, patterns: Sequence[LearnedPattern]) -> Optional[LearnedPattern]:
    """
    Pick the learned pattern that answers `message`, if any.

    Order: exact trigger match (confidence > 0.8), then the first partial match by
    word overlap, then a topic pattern whose trigger appears in the message.
    `patterns` are expected in descending confidence order.
    """
    normalized = normalize(message)

    for pattern in patterns:
        if pattern.trigger == normalized and pattern.confidence > HIGH_CONFIDENCE:
            return pattern

    for pattern in patterns:
        if (
            similarity(normalized, pattern.trigger) > PARTIAL_MATCH_SIMILARITY
            and pattern.confidence > PARTIAL_MATCH_CONFIDENCE
        ):
            return pattern

    lowered = (message or "").lower()
    for pattern in patterns:
        if pattern.pattern_type == TOPIC_PATTERN and pattern.trigger in lowered:
            return pattern

    return None


def personalize(response: str, user_context: Optional[UserContext]) -> str:
    """Swap the standalone word "there" for the user's display name."""
    if user_context is None or not user_context.display_name:
        return response
    name = user_context.display_name
    return _THERE_PATTERN.sub(lambda _match: name, response)


class ResponseEngine:
    """
    Entry point used by the presentation layer: `get_response(message, user)`.

    Pattern-usage bumps and conversation logging run on a small thread pool so a
    slow or failing write never delays or changes the returned text. Call
    `close()` to drain pending writes.
    """

    def __init__(
        self,
        store: RecordStore,
        site_cache: Optional[SiteDataCache] = None,
        user_loader: Optional[UserContextLoader] = None,
        pattern_store: Optional[PatternStore] = None,
        conversation_log: Optional[ConversationLog] = None,
        classifier: Optional[IntentClassifier] = None,
        rng: Optional[random.Random] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.store = store
        self.site_cache = site_cache or SiteDataCache(store)
        self.user_loader = user_loader or UserContextLoader(store)
        self.pattern_store = pattern_store or PatternStore(store)
        self.conversation_log = conversation_log or ConversationLog(store)
        self.classifier = classifier or IntentClassifier()
        self.responses = ResponseBuilder(rng)
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="afac-writes")
        self._closed = False

    def get_response(self, message: str, user: Optional[UserIdentity] = None) -> str:
        site_data = self.site_cache.load()
        user_context = self.user_loader.load(user)
        patterns = self.pattern_store.get_patterns_above_confidence(RETRIEVAL_CONFIDENCE)

        learned = match_learned_pattern(message, patterns)
        if learned is not None:
            self._in_background(self.pattern_store.increment_usage, learned.trigger)
            response = personalize(learned.response, user_context)
            context: Dict[str, Any] = {
                "source": "learned",
                "confidence": "high",
                "pattern_trigger": learned.trigger,
                "pattern_type": learned.pattern_type,
            }
        else:
            intent = self.classifier.classify(message)
            response = self.responses.build(intent, message or "", site_data, user_context)
            context = {"source": "default", "confidence": "medium", "intent": intent}

        if user is not None and user.id:
            record = ConversationRecord(
                user_message=message,
                bot_response=response,
                user_id=user.id,
                context=context,
            )
            self._in_background(self.conversation_log.log, record)

        return response

    def get_learning_stats(self) -> LearningStats:
        return self.pattern_store.get_learning_stats()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Background writes
    # ------------------------------------------------------------------

    def _in_background(self, func: Callable[..., Any], *args: Any) -> None:
        if self._closed:
            self._run_logged(func, *args)
            return
        try:
            future = self._executor.submit(func, *args)
        except RuntimeError:
            # executor shut down by a concurrent close()
            self._run_logged(func, *args)
            return
        future.add_done_callback(self._report_failure)

    def _run_logged(self, func: Callable[..., Any], *args: Any) -> None:
        try:
            func(*args)
        except Exception:
            logger.exception("Background write %s failed", getattr(func, "__name__", func))

    @staticmethod
    def _report_failure(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Background write failed: %s", exc, exc_info=exc)
