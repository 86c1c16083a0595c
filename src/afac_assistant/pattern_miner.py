"""
Derives learned patterns from conversation history and from site reference data.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Optional, Sequence

import pandas as pd

from .models import (
    COURSE_RECOMMENDATION,
    FREQUENT_QUESTION,
    SUCCESS_STORY,
    TOPIC_PATTERN,
    ConversationRecord,
    LearnedPattern,
    utc_now_iso,
)
from .pattern_store import MINING_WINDOW, ConversationLog, PatternStore
from .record_store import RecordStore, StoreError
from .text_matching import normalize, split_sentences

logger = logging.getLogger(__name__)

FREQUENT_QUESTION_MIN_GROUP = 3
FREQUENT_QUESTION_MAX_CONFIDENCE = 0.9
TOPIC_MIN_CONVERSATIONS = 5
TOPIC_CONFIDENCE = 0.8
TOPIC_MAX_PHRASES = 3
PHRASE_MIN_LENGTH = 20
COMMON_PHRASE_LIMIT = 5
COURSE_RECOMMENDATION_CONFIDENCE = 0.9
SUCCESS_STORY_CONFIDENCE = 0.8

TOPIC_KEYWORDS: Dict[str, List[str]] = {
    "courses": ["course", "learn", "training", "study"],
    "technology": ["iot", "smart", "sensor", "automation"],
    "farming": ["soil", "crop", "plant", "harvest"],
    "progress": ["progress", "track", "complete"],
}


def most_common_response(responses: Sequence[str]) -> str:
    """
    Most frequent response by normalized form; ties go to the first one seen.

    The original wording of the first response in the winning group is returned.
    """
    if not responses:
        return ""
    first_seen: Dict[str, str] = {}
    counts: Counter = Counter()
    for response in responses:
        key = normalize(response)
        first_seen.setdefault(key, response)
        counts[key] += 1
    winner, _ = counts.most_common(1)[0]
    return first_seen[winner]


def extract_common_phrases(responses: Sequence[str], limit: int = COMMON_PHRASE_LIMIT) -> List[str]:
    """
    Sentences longer than PHRASE_MIN_LENGTH, deduplicated by normalized form,
    ordered by frequency (first-seen on ties).
    """
    first_seen: Dict[str, str] = {}
    counts: Counter = Counter()
    for response in responses:
        for sentence in split_sentences(response):
            if len(sentence) <= PHRASE_MIN_LENGTH:
                continue
            key = normalize(sentence)
            first_seen.setdefault(key, sentence)
            counts[key] += 1
    return [first_seen[key] for key, _ in counts.most_common(limit)]


def _context_source(context) -> Optional[str]:
    if isinstance(context, dict):
        return context.get("source")
    return None


class PatternMiner:
    """
    Turns recent conversations and site content into LearnedPattern rows.
    """

    def __init__(
        self,
        store: RecordStore,
        pattern_store: PatternStore,
        conversation_log: ConversationLog,
    ) -> None:
        self.store = store
        self.pattern_store = pattern_store
        self.conversation_log = conversation_log

    # ------------------------------------------------------------------
    # Conversation mining
    # ------------------------------------------------------------------

    def analyze_patterns(self) -> List[LearnedPattern]:
        """
        Mine the most recent conversations and persist the resulting patterns.
        """
        try:
            conversations = self.conversation_log.recent(MINING_WINDOW)
        except StoreError as exc:
            logger.warning("Could not load conversations for mining: %s", exc)
            return []
        if not conversations:
            return []

        patterns = self.mine_patterns(conversations)
        try:
            self.pattern_store.upsert_patterns(patterns)
        except StoreError as exc:
            logger.warning("Could not save mined patterns: %s", exc)
        logger.info("Mined %d patterns from %d conversations", len(patterns), len(conversations))
        return patterns

    def mine_patterns(self, conversations: Sequence[ConversationRecord]) -> List[LearnedPattern]:
        """
        Derive frequent-question and topic patterns from newest-first conversations.
        """
        if not conversations:
            return []

        frame = pd.DataFrame([conversation.to_record() for conversation in conversations])
        frame["trigger"] = frame["user_message"].fillna("").map(normalize)

        patterns: List[LearnedPattern] = []
        for trigger, group in frame.groupby("trigger", sort=False):
            if not trigger or len(group) < FREQUENT_QUESTION_MIN_GROUP:
                continue
            patterns.append(
                LearnedPattern(
                    pattern_type=FREQUENT_QUESTION,
                    trigger=trigger,
                    response=most_common_response(group["bot_response"].fillna("").tolist()),
                    confidence=min(FREQUENT_QUESTION_MAX_CONFIDENCE, len(group) / 10),
                    usage_count=len(group),
                    last_used=group["created_at"].iloc[0],
                )
            )

        patterns.extend(self._extract_topic_patterns(frame))
        return patterns

    def _extract_topic_patterns(self, frame: pd.DataFrame) -> List[LearnedPattern]:
        lowered = frame["user_message"].fillna("").str.lower()
        sources = frame["context"].map(_context_source)

        topic_patterns = []
        for topic, keywords in TOPIC_KEYWORDS.items():
            mask = lowered.map(lambda message: any(keyword in message for keyword in keywords))
            topic_rows = frame[mask]
            if len(topic_rows) < TOPIC_MIN_CONVERSATIONS:
                continue

            successful = topic_rows[sources[mask] != "default"]["bot_response"].fillna("").tolist()
            if not successful:
                continue

            phrases = extract_common_phrases(successful)[:TOPIC_MAX_PHRASES]
            if not phrases:
                continue

            topic_patterns.append(
                LearnedPattern(
                    pattern_type=TOPIC_PATTERN,
                    trigger=topic,
                    response=" ".join(f"{phrase}." for phrase in phrases),
                    confidence=TOPIC_CONFIDENCE,
                    usage_count=len(topic_rows),
                    last_used=topic_rows["created_at"].iloc[0],
                )
            )
        return topic_patterns

    # ------------------------------------------------------------------
    # Site data training
    # ------------------------------------------------------------------

    def train_from_site_data(self) -> List[LearnedPattern]:
        """
        Build recommendation and success-story patterns from the current site content.
        """
        try:
            courses = self.store.select("courses")
            stories = self.store.select("success_stories")
        except StoreError as exc:
            logger.warning("Could not load site data for training: %s", exc)
            return []

        patterns = self.generate_site_data_patterns(courses, stories)
        try:
            self.pattern_store.upsert_patterns(patterns)
        except StoreError as exc:
            logger.warning("Could not save site data patterns: %s", exc)
        logger.info("Trained %d patterns from site data", len(patterns))
        return patterns

    @staticmethod
    def generate_site_data_patterns(
        courses: List[dict],
        stories: List[dict],
    ) -> List[LearnedPattern]:
        now = utc_now_iso()
        patterns: List[LearnedPattern] = []

        course_frame = pd.DataFrame(courses)
        if "category" in course_frame and "title" in course_frame:
            categorized = course_frame.dropna(subset=["category"])
            for category, group in categorized.groupby("category", sort=False):
                category = str(category)
                patterns.append(
                    LearnedPattern(
                        pattern_type=COURSE_RECOMMENDATION,
                        trigger=category.lower(),
                        response=(
                            f'For {category}, I recommend "{group["title"].iloc[0]}". '
                            f"We have {len(group)} courses in this category."
                        ),
                        confidence=COURSE_RECOMMENDATION_CONFIDENCE,
                        usage_count=1,
                        last_used=now,
                    )
                )

        if stories:
            story = stories[0]
            patterns.append(
                LearnedPattern(
                    pattern_type=SUCCESS_STORY,
                    trigger="success",
                    response=(
                        f"Here's a great success story: {story.get('title', '')} - "
                        f"{story.get('description', '')}"
                    ),
                    confidence=SUCCESS_STORY_CONFIDENCE,
                    usage_count=1,
                    last_used=now,
                )
            )

        return patterns
