"""
Test suite for Conversation Context Builder

This module tests the conversation context service to ensure:
- The interview phase advances with interviewer turn count
- The late-interview focus directive switches on at the threshold
- Recent interviewer questions come back newest first
- History rendering labels speakers and keeps only the tail
- The last real question is found for repeat/clarify requests

Run tests with: pytest backend/tests/test_conversation_context.py -v
"""

import pytest
import sys
import os

# Add backend directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from models import Turn
from prompts.interview_prompts import PromptTemplates
from services.conversation_context import (
    build_conversation_history,
    core_focus_directive,
    count_interviewer_turns,
    find_last_question,
    looks_like_question,
    phase,
    recent_interviewer_questions,
)


# ============================================================================
# FIXTURES - Reusable test setup components
# ============================================================================

@pytest.fixture
def turn_factory():
    """Factory for alternating interviewer/candidate transcripts."""
    def create(*pairs):
        turns = []
        for question, answer in pairs:
            turns.append(Turn(speaker="interviewer", text=question))
            if answer is not None:
                turns.append(Turn(speaker="user", text=answer))
        return tuple(turns)
    return create


@pytest.fixture
def sample_conversation(turn_factory):
    return turn_factory(
        ("Could you briefly introduce yourself?", "I am a backend developer."),
        ("What is your experience with Kafka?", "I ran consumer groups in production."),
        ("How do you monitor consumer lag?", "With Prometheus alerts."),
        ("Good.", None),
    )


# ============================================================================
# TEST CLASS: Phase tracking
# ============================================================================

class TestPhase:
    """Tests for phase() and core_focus_directive()"""

    @pytest.mark.parametrize("turns,expected", [
        (0, "technical-skills"),
        (1, "technical-skills"),
        (2, "experience-projects"),
        (4, "experience-projects"),
        (5, "behavioral"),
        (12, "behavioral"),
    ])
    def test_phase_by_turn_count(self, turns, expected):
        current = phase(turns)
        assert current.name == expected
        assert current.guidance == PromptTemplates.PHASE_GUIDANCE[expected]

    def test_core_focus_before_threshold(self):
        assert core_focus_directive(9) is None

    def test_core_focus_at_threshold(self):
        assert core_focus_directive(10) == PromptTemplates.CORE_SKILLS_THEN_HR

    def test_count_interviewer_turns(self, sample_conversation):
        assert count_interviewer_turns(sample_conversation) == 4


# ============================================================================
# TEST CLASS: Recent questions and history
# ============================================================================

class TestHistory:
    """Tests for recent_interviewer_questions and build_conversation_history"""

    def test_recent_questions_newest_first(self, sample_conversation):
        assert recent_interviewer_questions(sample_conversation) == [
            "Good.",
            "How do you monitor consumer lag?",
            "What is your experience with Kafka?",
        ]

    def test_recent_questions_limit(self, sample_conversation):
        assert len(recent_interviewer_questions(sample_conversation, limit=2)) == 2

    def test_recent_questions_empty(self):
        assert recent_interviewer_questions(()) == []

    def test_history_labels_speakers(self, turn_factory):
        conversation = turn_factory(("What is Kafka?", "A log."))
        assert build_conversation_history(conversation) == "Interviewer: What is Kafka?\nCandidate: A log."

    def test_history_keeps_tail_only(self, sample_conversation):
        history = build_conversation_history(sample_conversation, last_n=2)
        assert history == "Candidate: With Prometheus alerts.\nInterviewer: Good."

    def test_history_skips_blank_turns(self):
        conversation = (Turn(speaker="interviewer", text="  "), Turn(speaker="candidate", text="Hi"))
        assert build_conversation_history(conversation) == "Candidate: Hi"


# ============================================================================
# TEST CLASS: Last question lookup
# ============================================================================

class TestFindLastQuestion:
    """Tests for find_last_question and looks_like_question"""

    def test_short_feedback_is_not_a_question(self):
        assert looks_like_question("Good.") is False
        assert looks_like_question("Describe your testing approach") is True

    def test_skips_feedback_turns(self, sample_conversation):
        assert find_last_question(sample_conversation) == "How do you monitor consumer lag?"

    def test_uses_current_question_when_no_turn_qualifies(self):
        conversation = (Turn(speaker="interviewer", text="Nice."),)
        result = find_last_question(conversation, current_question="What is your experience with Kafka?")
        assert result == "What is your experience with Kafka?"

    def test_falls_back_to_long_interviewer_turn(self):
        conversation = (Turn(speaker="interviewer", text="Thanks a lot."),)
        assert find_last_question(conversation) == "Thanks a lot."

    def test_none_when_nothing_qualifies(self):
        conversation = (Turn(speaker="candidate", text="Can you repeat that?"),)
        assert find_last_question(conversation) is None
