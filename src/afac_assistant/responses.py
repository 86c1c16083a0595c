"""
Templated response builders, one per intent.
"""

from __future__ import annotations

import random
from typing import Callable, Dict, List, Optional

from . import intents
from .models import SiteDataSnapshot, UserContext
from .user_context import ANONYMOUS_NAME

BRAND = "Artificial Farm Academy"
SUPPORT_EMAIL = "Artificialfarm24@gmail.com"
SUPPORT_PHONE = "+234 803 562 6198"


def _name(user: Optional[UserContext]) -> str:
    if user is None:
        return ANONYMOUS_NAME
    return user.display_name or ANONYMOUS_NAME


def _unique_categories(courses: List[dict], limit: int = 3) -> List[str]:
    categories = [course.get("category") for course in courses if course.get("category")]
    return list(dict.fromkeys(categories))[:limit]


def _title(course: dict) -> str:
    return course.get("title") or "Untitled course"


class ResponseBuilder:
    """
    Composes intent-specific answers from site data and user context.

    `rng` picks among template variants; pass a seeded random.Random to pin it.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()
        self._builders: Dict[str, Callable[[str, SiteDataSnapshot, Optional[UserContext]], str]] = {
            intents.GREETING: self.greeting,
            intents.COURSE: self.course,
            intents.PROGRESS: self.progress,
            intents.TECHNOLOGY: self.technology,
            intents.SUCCESS: self.success,
            intents.CONSULTING: self.consulting,
            intents.CONTACT: self.contact,
            intents.FARMING_TOPIC: self.farming_topic,
            intents.DEFAULT: self.default,
        }

    def build(
        self,
        intent: str,
        message: str,
        site_data: SiteDataSnapshot,
        user: Optional[UserContext],
    ) -> str:
        builder = self._builders.get(intent, self.default)
        return builder(message.lower(), site_data, user)

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    def greeting(self, message: str, site_data: SiteDataSnapshot, user: Optional[UserContext]) -> str:
        name = _name(user)
        variants = [
            f"Hello {name}! Welcome to {BRAND}. I'm AFAC Assistant, your intelligent farming companion. "
            f"I have access to {len(site_data.courses)} courses and can provide personalized guidance "
            f"based on your farming goals.",
            f"Hi {name}! I'm the {BRAND} assistant, here to help you with smart farming solutions, "
            f"course recommendations, and expert advice. What farming challenge can I help you solve today?",
            f"Welcome to {BRAND}, {name}! I can assist you with our comprehensive farming courses, "
            f"technology solutions, and connect you with expert consultants. "
            f"How can I help you grow your farming success?",
        ]
        return self.rng.choice(variants)

    def course(self, message: str, site_data: SiteDataSnapshot, user: Optional[UserContext]) -> str:
        courses = site_data.courses

        if "beginner" in message or "start" in message:
            beginner = [c for c in courses if c.get("difficulty_level") == "Beginner"]
            if beginner:
                return (
                    f'Perfect for beginners! I recommend starting with "{_title(beginner[0])}". '
                    f"We also have {len(courses)} total courses covering everything from basic farming "
                    f"to advanced IoT integration. Would you like me to suggest a learning path based "
                    f"on your interests?"
                )

        if "advanced" in message or "expert" in message:
            advanced = [c for c in courses if c.get("difficulty_level") == "Advanced"]
            if advanced:
                return (
                    f'For advanced learners, I recommend "{_title(advanced[0])}". Our advanced courses '
                    f"cover cutting-edge farming technologies and data-driven agriculture. "
                    f"What specific advanced topic interests you most?"
                )

        enrolled = len(user.enrollments) if user else 0
        if enrolled > 0:
            categories = ", ".join(_unique_categories(courses)) or "farming and technology"
            return (
                f"You're currently enrolled in {enrolled} courses with {user.total_progress_percent}% "
                f"average progress. Our course library includes {len(courses)} courses across "
                f"categories like {categories}. Would you like recommendations for your next course?"
            )

        if not courses:
            return (
                "Our course catalog is being refreshed right now. We cover everything from basic "
                "farming to advanced IoT integration. What's your current farming experience level?"
            )

        highlighted = ", ".join(f'"{_title(course)}"' for course in courses[:2])
        return (
            f"We offer {len(courses)} comprehensive courses including {highlighted}, and more. "
            f"Our courses range from beginner to advanced levels. "
            f"What's your current farming experience level?"
        )

    def progress(self, message: str, site_data: SiteDataSnapshot, user: Optional[UserContext]) -> str:
        if user is None or not user.is_active:
            return (
                "To track your progress, you'll need to enroll in our courses first. I can recommend "
                "some excellent starting courses based on your farming interests and experience level. "
                "What type of farming are you most interested in?"
            )

        return (
            f"Great question! You're making excellent progress with {user.total_progress_percent}% "
            f"average completion across your {len(user.enrollments)} enrolled courses. "
            f"You've completed {user.completed_lesson_count} out of {user.total_lesson_count} lessons. "
            f"Keep up the fantastic work! Would you like tips on staying motivated or suggestions "
            f"for your next learning milestone?"
        )

    def technology(self, message: str, site_data: SiteDataSnapshot, user: Optional[UserContext]) -> str:
        tech_courses = [
            course
            for course in site_data.courses
            if course.get("category") == "Technology"
            or "iot" in _title(course).lower()
            or "smart" in _title(course).lower()
        ]

        if "iot" in message or "sensor" in message:
            suggestion = f' Check out our "{_title(tech_courses[0])}" course.' if tech_courses else ""
            return (
                "IoT and sensors are revolutionizing agriculture! Our technology courses cover soil "
                "sensors, weather monitoring, automated irrigation, and crop health tracking. These "
                f"technologies can increase yields by 20-40% while reducing resource usage.{suggestion} "
                "What specific IoT application interests you most?"
            )

        if "drone" in message or "monitoring" in message:
            return (
                "Drone technology is amazing for crop monitoring and precision agriculture! Drones can "
                "detect pest infestations, monitor crop health, and optimize fertilizer application. "
                "Combined with AI analysis, they provide invaluable insights for modern farmers. "
                "Would you like to learn about integrating drones into your farming operations?"
            )

        return (
            "Smart farming technology is transforming agriculture! We cover IoT sensors, automated "
            "systems, data analytics, and AI-powered crop management. These technologies can "
            "significantly improve efficiency and yields. What aspect of agricultural technology "
            "interests you most?"
        )

    def success(self, message: str, site_data: SiteDataSnapshot, user: Optional[UserContext]) -> str:
        stories = site_data.success_stories
        testimonials = site_data.testimonials

        if stories:
            story = stories[0]
            quote = ""
            if testimonials:
                quote = (
                    f' As {testimonials[0].get("name", "one of our students")} says: '
                    f'"{testimonials[0].get("content", "")}"'
                )
            return (
                f"Our farmers achieve incredible results! For example, one farmer "
                f"{(story.get('title') or '').lower()} {story.get('description') or ''}.{quote} "
                f"These success stories show what's possible with the right knowledge and techniques. "
                f"Would you like to hear more success stories or learn how to achieve similar results?"
            )

        return (
            "We've helped countless farmers transform their operations! Our students typically see "
            "20-40% increases in crop yields, 30% reduction in water usage, and significant cost "
            "savings through smart farming techniques. Success comes from combining traditional "
            "farming wisdom with modern technology. What farming challenge would you like to overcome?"
        )

    def consulting(self, message: str, site_data: SiteDataSnapshot, user: Optional[UserContext]) -> str:
        return (
            f"Hello {_name(user)}! Our expert consultants provide personalized farm optimization, "
            "technology integration, and sustainable farming strategies. We offer one-on-one "
            "consultations for crop yield improvement, resource management, and smart farming "
            "implementation. Our consultants have helped farmers increase productivity by up to 40%. "
            "Would you like to schedule a consultation or learn more about our consulting services?"
        )

    def contact(self, message: str, site_data: SiteDataSnapshot, user: Optional[UserContext]) -> str:
        return (
            f"You can reach our support team at {SUPPORT_EMAIL} or call us at {SUPPORT_PHONE}. "
            "We're also available through WhatsApp for quick questions. Our team typically responds "
            "within 2-4 hours during business hours. I'm also here 24/7 to help with immediate "
            "questions about courses, farming techniques, and general guidance!"
        )

    def farming_topic(self, message: str, site_data: SiteDataSnapshot, user: Optional[UserContext]) -> str:
        if "soil" in message:
            return (
                "Soil health is the foundation of successful farming! Key factors include pH levels, "
                "nutrient content, organic matter, and soil structure. Our courses cover soil testing, "
                "amendment strategies, and sustainable soil management practices. Healthy soil can "
                "increase yields by 25-50%. Would you like specific advice on soil testing or "
                "improvement techniques?"
            )

        if "water" in message or "irrigation" in message:
            return (
                "Water management is crucial for sustainable farming! Efficient irrigation systems can "
                "reduce water usage by 30-50% while maintaining or increasing yields. We cover drip "
                "irrigation, smart sprinkler systems, soil moisture monitoring, and drought-resistant "
                "techniques. What's your current irrigation setup?"
            )

        if "pest" in message or "disease" in message:
            return (
                "Integrated Pest Management (IPM) is key to healthy crops! This includes biological "
                "controls, beneficial insects, crop rotation, and targeted treatments. Early detection "
                "through monitoring and smart sensors can prevent major infestations. Our courses teach "
                "sustainable pest control methods that protect both crops and the environment."
            )

        if "crop" in message or "plant" in message:
            return (
                "Crop optimization involves selecting the right varieties, proper spacing, nutrient "
                "management, and growth monitoring. Modern techniques include precision planting, "
                "variable rate application, and data-driven decision making. What crops are you "
                "currently growing or planning to grow?"
            )

        return (
            "That's an important farming topic! Our comprehensive courses cover all aspects of modern "
            "agriculture, from traditional techniques to cutting-edge technology. I can provide "
            "specific guidance if you tell me more about your farming situation and goals. "
            "What specific challenge are you facing?"
        )

    def default(self, message: str, site_data: SiteDataSnapshot, user: Optional[UserContext]) -> str:
        name = _name(user)
        variants = [
            f"That's a great question, {name}! I'd love to provide more specific guidance. Could you "
            "tell me more about your farming goals or current challenges? I have access to "
            "comprehensive course data and can offer personalized recommendations.",
            "Interesting topic! As your farming companion, I can help with course recommendations, "
            "farming techniques, and connecting you with experts. What specific aspect would you "
            "like to explore further?",
            "I'm here to help with all your farming questions! Whether you're interested in "
            "traditional techniques or modern technology, I can guide you to the right resources. "
            "What's your main farming interest or challenge?",
            "Great question! I can provide detailed information about our courses, farming best "
            "practices, and technology solutions. To give you the most helpful response, could you "
            "share more about your farming background or specific interests?",
        ]
        return self.rng.choice(variants)
