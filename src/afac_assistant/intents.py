"""
Keyword-rule intent classifier for incoming chat messages.

Rules are evaluated in order and the first match wins, so overlaps between
keyword sets are resolved by position (e.g. "achievement" is listed under both
progress and success and always classifies as progress).
"""

from __future__ import annotations

import re
from typing import List, Pattern, Sequence, Tuple

GREETING = "greeting"
COURSE = "course"
PROGRESS = "progress"
TECHNOLOGY = "technology"
SUCCESS = "success"
CONSULTING = "consulting"
CONTACT = "contact"
FARMING_TOPIC = "farming_topic"
DEFAULT = "default"

INTENT_RULES: List[Tuple[str, Tuple[str, ...]]] = [
    (GREETING, ("hello", "hi", "hey", "good morning", "good afternoon", "good evening", "greetings")),
    (COURSE, ("course", "learn", "training", "study", "education", "class", "lesson", "curriculum")),
    (PROGRESS, ("progress", "track", "complete", "finish", "achievement", "status")),
    (TECHNOLOGY, ("technology", "iot", "smart", "automation", "sensor", "drone", "ai", "digital")),
    (SUCCESS, ("success", "result", "achievement", "testimonial", "review", "story")),
    (CONSULTING, ("consult", "advice", "expert", "specialist", "help", "guidance")),
    (CONTACT, ("contact", "reach", "support", "phone", "email", "call")),
    (FARMING_TOPIC, ("soil", "crop", "plant", "harvest", "water", "irrigation", "pest", "fertilizer", "seed")),
]

# Keywords this short only count as whole words ("hi" must not fire on "achievement").
WHOLE_WORD_MAX_LENGTH = 3


def _keyword_pattern(keyword: str) -> str:
    phrase = r"\s+".join(re.escape(part) for part in keyword.split())
    if len(keyword) <= WHOLE_WORD_MAX_LENGTH:
        return rf"\b{phrase}\b"
    return rf"\b{phrase}"


def _compile(keywords: Sequence[str]) -> Pattern[str]:
    return re.compile("|".join(_keyword_pattern(keyword) for keyword in keywords))


class IntentClassifier:
    """
    Ordered (intent, keywords) rules; `classify` returns the first intent that matches.
    """

    def __init__(self, rules: Sequence[Tuple[str, Sequence[str]]] = INTENT_RULES) -> None:
        self.rules: List[Tuple[str, Pattern[str]]] = [
            (intent, _compile(keywords)) for intent, keywords in rules
        ]

    def classify(self, message: str) -> str:
        lowered = (message or "").lower()
        for intent, pattern in self.rules:
            if pattern.search(lowered):
                return intent
        return DEFAULT

    @property
    def intents(self) -> List[str]:
        return [intent for intent, _ in self.rules] + [DEFAULT]
