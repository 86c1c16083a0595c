"""
Loads a per-request enrollment and lesson-progress summary for an authenticated user.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from .models import UserContext, UserIdentity
from .record_store import RecordStore, StoreError

logger = logging.getLogger(__name__)

ANONYMOUS_NAME = "there"
ENROLLMENT_LIMIT = 5
PROGRESS_LIMIT = 20


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _progress_value(enrollment: dict) -> float:
    try:
        return float(enrollment.get("progress") or 0)
    except (TypeError, ValueError):
        return 0.0


class UserContextLoader:
    """
    Builds a UserContext from `course_enrollments` and `lesson_progress`; never cached.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def load(self, user: Optional[UserIdentity]) -> Optional[UserContext]:
        if user is None or not user.id:
            return None

        display_name = user.full_name or ANONYMOUS_NAME
        try:
            enrollments = self.store.select(
                "course_enrollments",
                columns="*, courses(title, category)",
                filters=[("user_id", "eq", user.id)],
                limit=ENROLLMENT_LIMIT,
            )
            progress = self.store.select(
                "lesson_progress",
                columns="course_id, completed, watched_percentage",
                filters=[("user_id", "eq", user.id)],
                limit=PROGRESS_LIMIT,
            )
        except StoreError as exc:
            logger.warning("Error loading user data for %s: %s", user.id, exc)
            return UserContext(display_name=display_name, email=user.email)

        total_progress = 0
        if enrollments:
            mean = sum(_progress_value(item) for item in enrollments) / len(enrollments)
            total_progress = _round_half_up(mean)

        return UserContext(
            display_name=display_name,
            email=user.email,
            enrollments=enrollments,
            total_progress_percent=total_progress,
            completed_lesson_count=sum(1 for row in progress if row.get("completed")),
            total_lesson_count=len(progress),
            is_active=len(enrollments) > 0,
        )
