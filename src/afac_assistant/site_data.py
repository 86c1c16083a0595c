"""
Time-boxed cache of the site reference data (courses, success stories, testimonials).
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from .models import SiteDataSnapshot
from .record_store import RecordStore, StoreError

logger = logging.getLogger(__name__)

SITE_DATA_TTL_SECONDS = 300.0

COURSE_LIMIT = 10
STORY_LIMIT = 5
TESTIMONIAL_LIMIT = 5


def default_site_data() -> SiteDataSnapshot:
    """Built-in snapshot served when the store has never answered."""
    return SiteDataSnapshot(
        courses=[
            {"title": "Smart Farming Basics", "category": "Agriculture", "difficulty_level": "Beginner"},
            {"title": "Soil Analysis & Management", "category": "Agriculture", "difficulty_level": "Intermediate"},
            {"title": "IoT in Agriculture", "category": "Technology", "difficulty_level": "Advanced"},
            {"title": "Sustainable Farming Practices", "category": "Sustainability", "difficulty_level": "Intermediate"},
        ],
        success_stories=[
            {"title": "Increased Crop Yield by 40%", "description": "Using smart irrigation systems"},
            {"title": "Reduced Water Usage by 30%", "description": "Through precision agriculture"},
        ],
        testimonials=[
            {"name": "John Farmer", "content": "Amazing courses that transformed my farm!", "rating": 5},
        ],
    )


class SiteDataCache:
    """
    Serves a cached SiteDataSnapshot while it is younger than `ttl_seconds`.

    There is no background refresh: the first call after expiry refetches.
    """

    def __init__(
        self,
        store: RecordStore,
        ttl_seconds: float = SITE_DATA_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot: Optional[SiteDataSnapshot] = None
        self._fetched_at = 0.0

    def load(self) -> SiteDataSnapshot:
        now = self._clock()
        if self._snapshot is not None and (now - self._fetched_at) < self.ttl_seconds:
            return self._snapshot

        try:
            snapshot = self._fetch(now)
        except StoreError as exc:
            logger.warning("Error loading site data for chatbot: %s", exc)
            return self._snapshot or default_site_data()

        self._snapshot = snapshot
        self._fetched_at = now
        return snapshot

    def invalidate(self) -> None:
        self._snapshot = None
        self._fetched_at = 0.0

    def _fetch(self, now: float) -> SiteDataSnapshot:
        with ThreadPoolExecutor(max_workers=3) as pool:
            courses = pool.submit(
                self.store.select,
                "courses",
                columns="id, title, description, category, difficulty_level",
                limit=COURSE_LIMIT,
            )
            stories = pool.submit(
                self.store.select,
                "success_stories",
                columns="title, description",
                limit=STORY_LIMIT,
            )
            testimonials = pool.submit(
                self.store.select,
                "testimonials",
                columns="name, content, rating",
                limit=TESTIMONIAL_LIMIT,
            )
            return SiteDataSnapshot(
                courses=courses.result() or [],
                success_stories=stories.result() or [],
                testimonials=testimonials.result() or [],
                fetched_at=now,
            )
