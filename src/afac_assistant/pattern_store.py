"""
Accessors for learned patterns (`ai_patterns`) and the conversation log (`ai_conversations`).
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List

import pandas as pd

from .models import ConversationRecord, LearnedPattern, LearningStats
from .record_store import RecordStore, StoreError

logger = logging.getLogger(__name__)

PATTERNS_TABLE = "ai_patterns"
CONVERSATIONS_TABLE = "ai_conversations"
USAGE_PROCEDURE = "increment_pattern_usage"

RETRIEVAL_CONFIDENCE = 0.6
HIGH_CONFIDENCE = 0.8
MINING_WINDOW = 1000


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PatternStore:
    """
    CRUD-style access to LearnedPattern rows keyed by their unique trigger.
    """

    def __init__(self, store: RecordStore, now: Callable[[], datetime] = _utc_now) -> None:
        self.store = store
        self._now = now

    def upsert_pattern(self, pattern: LearnedPattern) -> None:
        self.upsert_patterns([pattern])

    def upsert_patterns(self, patterns: Iterable[LearnedPattern]) -> None:
        """
        Write patterns with last-write-wins semantics on `trigger`.

        A batch may name the same trigger twice; only the last one is sent,
        since one upsert statement cannot touch a row twice.

        Raises StoreError; callers decide whether a failed save matters.
        """
        stamp = self._now().isoformat()
        latest = {pattern.trigger: pattern for pattern in patterns}
        records = []
        for pattern in latest.values():
            pattern.updated_at = stamp
            records.append(pattern.to_record())
        if records:
            self.store.upsert(PATTERNS_TABLE, records, on_conflict="trigger")

    def get_patterns_above_confidence(self, min_confidence: float = RETRIEVAL_CONFIDENCE) -> List[LearnedPattern]:
        try:
            rows = self.store.select(
                PATTERNS_TABLE,
                filters=[("confidence", "gte", min_confidence)],
                order="confidence",
                descending=True,
            )
        except StoreError as exc:
            logger.warning("Could not load learned patterns: %s", exc)
            return []

        patterns = []
        for row in rows:
            pattern = LearnedPattern.from_record(row)
            if pattern is None:
                logger.debug("Skipping malformed pattern row: %r", row)
                continue
            patterns.append(pattern)
        return patterns

    def increment_usage(self, trigger: str) -> None:
        """Best-effort usage bump; concurrent bumps may under-count."""
        try:
            self.store.rpc(USAGE_PROCEDURE, {"pattern_trigger": trigger})
        except StoreError as exc:
            logger.warning("Could not update usage for pattern %r: %s", trigger, exc)

    def evict_stale_patterns(self, max_idle_days: int, confidence_floor: float) -> int:
        """
        Delete patterns unused for `max_idle_days` whose confidence is below the floor.

        Returns the number of patterns selected for eviction (0 when disabled or on error).
        """
        if max_idle_days <= 0:
            return 0
        cutoff = (self._now() - timedelta(days=max_idle_days)).isoformat()
        filters = [("last_used", "lt", cutoff), ("confidence", "lt", confidence_floor)]
        try:
            stale = self.store.select(PATTERNS_TABLE, columns="trigger", filters=filters)
            if not stale:
                return 0
            self.store.delete(PATTERNS_TABLE, filters)
        except StoreError as exc:
            logger.warning("Pattern eviction failed: %s", exc)
            return 0
        logger.info("Evicted %d stale patterns (idle > %d days, confidence < %.2f)",
                    len(stale), max_idle_days, confidence_floor)
        return len(stale)

    def get_learning_stats(self) -> LearningStats:
        try:
            total_conversations = self.store.count(CONVERSATIONS_TABLE)
            rows = self.store.select(PATTERNS_TABLE)
        except StoreError as exc:
            logger.warning("Could not load learning stats: %s", exc)
            return LearningStats()

        if not rows:
            return LearningStats(total_conversations=total_conversations)

        frame = pd.DataFrame(rows)
        if "confidence" in frame:
            confidence = pd.to_numeric(frame["confidence"], errors="coerce").fillna(0.0)
        else:
            confidence = pd.Series(0.0, index=frame.index)
        last_update = None
        if "updated_at" in frame:
            updated = frame["updated_at"].dropna()
            if not updated.empty:
                last_update = str(updated.astype(str).max())

        return LearningStats(
            total_conversations=total_conversations,
            total_patterns=len(frame),
            average_confidence=round(float(confidence.mean()), 2),
            high_confidence_patterns=int((confidence > HIGH_CONFIDENCE).sum()),
            last_learning_update=last_update,
        )


class ConversationLog:
    """
    Append-only history of answered messages, consumed by the pattern miner.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def log(self, record: ConversationRecord) -> None:
        try:
            self.store.insert(CONVERSATIONS_TABLE, record.to_record())
        except StoreError as exc:
            logger.warning("Could not log conversation: %s", exc)

    def recent(self, limit: int = MINING_WINDOW) -> List[ConversationRecord]:
        """Newest-first conversations; raises StoreError."""
        rows = self.store.select(
            CONVERSATIONS_TABLE,
            order="created_at",
            descending=True,
            limit=limit,
        )
        return [ConversationRecord.from_record(row) for row in rows]

    def count(self) -> int:
        return self.store.count(CONVERSATIONS_TABLE)
