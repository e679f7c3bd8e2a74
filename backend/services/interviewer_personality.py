# backend/services/interviewer_personality.py
"""
Interviewer Personality Service

Fixed phrase pools that give the interviewer a consistent voice without a
model call: the opening introduction request, greetings for opening questions,
acknowledgements before a repeated question, and one- or two-word instant
feedback for voice mode.

Key Features:
- Mode-dependent tone (friendly / moderate / strict)
- Random variety from each pool, with an injectable random source for tests
- No per-interview state, so one instance can serve concurrent requests
"""

import random
import logging
from typing import Optional

from models import InterviewMode, JobSummary

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class InterviewerPersonality:
    """
    Picks interviewer phrases from fixed pools.

    Attributes:
        rng: Random source used for every pick
    """

    # ==================== Response Pools ====================

    # Prefixed to a question the candidate asked to hear again
    REPEAT_ACKNOWLEDGMENTS = [
        "Sure, let me repeat that: ",
        "Of course! Here's the question again: ",
        "No problem, here it is again: ",
        "Absolutely! ",
    ]

    # Opening introduction requests; {role_phrase} is filled from the job
    INTRO_REQUESTS = {
        InterviewMode.FRIENDLY: (
            "Hey! Thanks for joining, we're excited to meet you! Let's start simple. "
            "Could you tell me a bit about yourself and your background, especially "
            "anything relevant to {role_phrase}?"
        ),
        InterviewMode.MODERATE: (
            "Thanks for joining! Let's start with the basics. Could you briefly introduce "
            "yourself and tell me about your professional background, especially as it "
            "relates to {role_phrase}?"
        ),
        InterviewMode.STRICT: (
            "Thanks for joining. Let's begin. Could you briefly introduce yourself and "
            "summarize your professional background as it relates to {role_phrase}?"
        ),
    }

    # Greetings placed before a generated opening question
    GREETINGS = [
        "Hi there! Let's have a quick chat{about}{at}.",
        "Welcome! Excited to learn more{fit}{at}.",
        "Great to meet you. We'll keep this relaxed{focused}{at}.",
        "Thanks for joining. Let's ease in{with_role}{at}.",
    ]

    SHORT_FEEDBACK = {
        InterviewMode.FRIENDLY: ["Nice!", "Good one.", "Sounds great!", "Love that.", "Excellent.", "Awesome."],
        InterviewMode.MODERATE: ["Good.", "Got it.", "Thanks.", "Makes sense.", "Understood.", "Nice."],
        InterviewMode.STRICT: ["Noted.", "Understood.", "Okay.", "Alright.", "Got it."],
    }

    NO_QUESTION_TO_CLARIFY = (
        "I'd be happy to help! Could you please provide your answer or let me know "
        "which question you'd like me to clarify?"
    )

    CLARIFY_PREFIX = "Let me clarify: "

    # ==================== Initialization ====================

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    # ==================== Helpers ====================

    @staticmethod
    def role_phrase(job: Optional[JobSummary]) -> str:
        """
        Describe the target role for templated text.

        Returns:
            "the Backend Engineer role at Acme", "the Backend Engineer role",
            "the role at Acme" or "this role"
        """
        role = job.role if job else ""
        company = job.company if job else ""
        if role and company:
            return f"the {role} role at {company}"
        if role:
            return f"the {role} role"
        if company:
            return f"the role at {company}"
        return "this role"

    # ==================== Phrase Generation ====================

    def introduction_request(self, mode: InterviewMode, job: Optional[JobSummary]) -> str:
        """Templated first question of an interview."""
        template = self.INTRO_REQUESTS.get(mode, self.INTRO_REQUESTS[InterviewMode.MODERATE])
        return template.format(role_phrase=self.role_phrase(job))

    def greeting(self, job_title: str = "", company: str = "") -> str:
        template = self.rng.choice(self.GREETINGS)
        return template.format(
            about=f" about the {job_title} role" if job_title else "",
            fit=f" about your fit for {job_title}" if job_title else "",
            focused=f" and focused on {job_title}" if job_title else "",
            with_role=f" with the {job_title} role" if job_title else "",
            at=f" at {company}" if company else "",
        )

    def repeat_acknowledgment(self) -> str:
        return self.rng.choice(self.REPEAT_ACKNOWLEDGMENTS)

    def short_feedback(self, mode: InterviewMode) -> str:
        pool = self.SHORT_FEEDBACK.get(mode) or self.SHORT_FEEDBACK[InterviewMode.MODERATE]
        return self.rng.choice(pool)

    def clarification_fallback(self, question: str) -> str:
        return f"{self.CLARIFY_PREFIX}{question}"


# ==================== Singleton & Convenience Functions ====================

_personality_instance: Optional[InterviewerPersonality] = None


def get_interviewer_personality() -> InterviewerPersonality:
    """
    Get or create the shared InterviewerPersonality instance.

    Returns:
        The shared InterviewerPersonality instance
    """
    global _personality_instance
    if _personality_instance is None:
        _personality_instance = InterviewerPersonality()
    return _personality_instance


def reset_interviewer_personality(rng: Optional[random.Random] = None) -> None:
    """Replace the shared instance, optionally with a seeded random source."""
    global _personality_instance
    _personality_instance = InterviewerPersonality(rng)


# ==================== Quick Access Functions ====================

def introduction_request(mode: InterviewMode, job: Optional[JobSummary]) -> str:
    return get_interviewer_personality().introduction_request(mode, job)


def short_feedback(mode: InterviewMode) -> str:
    return get_interviewer_personality().short_feedback(mode)
