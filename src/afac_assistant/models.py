"""
Dataclasses shared across the afac_assistant package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


FREQUENT_QUESTION = "frequent_question"
TOPIC_PATTERN = "topic_pattern"
COURSE_RECOMMENDATION = "course_recommendation"
SUCCESS_STORY = "success_story"

PATTERN_TYPES = (FREQUENT_QUESTION, TOPIC_PATTERN, COURSE_RECOMMENDATION, SUCCESS_STORY)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class UserIdentity:
    """
    Authenticated caller as handed over by the auth provider.
    """

    id: str
    email: Optional[str] = None
    full_name: Optional[str] = None

    @classmethod
    def from_auth_payload(cls, payload: Dict[str, Any]) -> "UserIdentity":
        metadata = payload.get("user_metadata") or {}
        return cls(
            id=str(payload["id"]),
            email=payload.get("email"),
            full_name=metadata.get("full_name"),
        )


@dataclass
class ConversationRecord:
    """
    One (message, response) exchange logged for later mining.
    """

    user_message: str
    bot_response: str
    user_id: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    created_at: str = field(default_factory=utc_now_iso)

    def to_record(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "user_message": self.user_message,
            "bot_response": self.bot_response,
            "context": self.context,
            "created_at": self.created_at,
        }

    @classmethod
    def from_record(cls, row: Dict[str, Any]) -> "ConversationRecord":
        return cls(
            user_message=row.get("user_message") or "",
            bot_response=row.get("bot_response") or "",
            user_id=row.get("user_id"),
            context=row.get("context") or {},
            created_at=row.get("created_at") or "",
        )


@dataclass
class LearnedPattern:
    """
    Stored trigger -> response association mined from conversation history.
    """

    pattern_type: str
    trigger: str
    response: str
    confidence: float
    usage_count: int = 0
    last_used: Optional[str] = None
    updated_at: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        return {
            "pattern_type": self.pattern_type,
            "trigger": self.trigger,
            "response": self.response,
            "confidence": self.confidence,
            "usage_count": self.usage_count,
            "last_used": self.last_used,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_record(cls, row: Dict[str, Any]) -> Optional["LearnedPattern"]:
        """
        Build a pattern from a stored row, or return None when the row is unusable.
        """
        trigger = row.get("trigger")
        response = row.get("response")
        confidence = row.get("confidence")
        if not trigger or not response or confidence is None:
            return None
        try:
            confidence = float(confidence)
            usage_count = int(row.get("usage_count") or 0)
        except (TypeError, ValueError):
            return None
        return cls(
            pattern_type=row.get("pattern_type") or FREQUENT_QUESTION,
            trigger=str(trigger),
            response=str(response),
            confidence=confidence,
            usage_count=usage_count,
            last_used=row.get("last_used"),
            updated_at=row.get("updated_at"),
        )


@dataclass
class SiteDataSnapshot:
    """
    Cached reference content used to enrich responses.
    """

    courses: List[dict] = field(default_factory=list)
    success_stories: List[dict] = field(default_factory=list)
    testimonials: List[dict] = field(default_factory=list)
    fetched_at: float = 0.0


@dataclass
class UserContext:
    """
    Per-request enrollment and progress summary for one user.
    """

    display_name: str
    email: Optional[str] = None
    enrollments: List[dict] = field(default_factory=list)
    total_progress_percent: int = 0
    completed_lesson_count: int = 0
    total_lesson_count: int = 0
    is_active: bool = False


@dataclass
class LearningStats:
    """
    Diagnostic summary shown on the admin view.
    """

    total_conversations: int = 0
    total_patterns: int = 0
    average_confidence: float = 0.0
    high_confidence_patterns: int = 0
    last_learning_update: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_conversations": self.total_conversations,
            "total_patterns": self.total_patterns,
            "average_confidence": self.average_confidence,
            "high_confidence_patterns": self.high_confidence_patterns,
            "last_learning_update": self.last_learning_update,
        }
