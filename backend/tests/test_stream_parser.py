"""
Test suite for Marker Stream Parser

Run tests with: pytest backend/tests/test_stream_parser.py -v
"""

import pytest
import sys
import os

# Add backend directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from services.stream_parser import MarkerStreamParser, ParserState, parse_marked_response


# ============================================================================
# FIXTURES - Reusable test setup components
# ============================================================================

@pytest.fixture
def split_tokens():
    """A marked response chopped mid-marker, the way providers stream it."""
    return ["[FEE", "DBACK: Go", "od.] [QUES", "TION: How do you size ", "Kafka?]"]


# ============================================================================
# TEST CLASS: Streaming
# ============================================================================

class TestStreaming:
    """Tests for token-by-token parsing"""

    def test_markers_split_across_tokens(self, split_tokens):
        parser = MarkerStreamParser()
        for token in split_tokens:
            parser.feed(token)
        parsed = parser.finish()

        assert parsed.feedback == "Good."
        assert parsed.question == "How do you size Kafka?"
        assert parsed.full_text == "".join(split_tokens)

    def test_state_transitions(self):
        parser = MarkerStreamParser()
        assert parser.state == ParserState.SEEKING
        parser.feed("[FEEDBACK: ")
        assert parser.state == ParserState.IN_FEEDBACK
        parser.feed("Nice.]")
        assert parser.state == ParserState.SEEKING
        parser.feed(" [QUESTION: Why")
        assert parser.state == ParserState.IN_QUESTION

    def test_single_character_tokens(self):
        parser = MarkerStreamParser()
        for char in "[FEEDBACK: Okay.] [QUESTION: What is a consumer group?]":
            parser.feed(char)
        parsed = parser.finish()

        assert parsed.feedback == "Okay."
        assert parsed.question == "What is a consumer group?"

    def test_empty_tokens_are_ignored(self):
        parser = MarkerStreamParser()
        parser.feed("")
        parser.feed(None)
        assert parser.finish().full_text == ""


# ============================================================================
# TEST CLASS: Complete responses
# ============================================================================

class TestCompleteResponses:
    """Tests for parse_marked_response"""

    def test_markers_are_case_insensitive(self):
        parsed = parse_marked_response("[feedback: Solid.] [Question: How do you test services?]")
        assert parsed.feedback == "Solid."
        assert parsed.question == "How do you test services?"

    def test_no_markers_uses_whole_text_as_question(self):
        parsed = parse_marked_response("How do you test services?")
        assert parsed.feedback == ""
        assert parsed.question == "How do you test services?"

    def test_feedback_only_uses_unmarked_text(self):
        parsed = parse_marked_response("[FEEDBACK: Good.] How do you test services?")
        assert parsed.feedback == "Good."
        assert parsed.question == "How do you test services?"

    def test_unterminated_question(self):
        parsed = parse_marked_response("[FEEDBACK: Good.] [QUESTION: How do you test services")
        assert parsed.question == "How do you test services"

    def test_non_marker_brackets_are_kept(self):
        parsed = parse_marked_response("Use [brackets] here?")
        assert parsed.question == "Use [brackets] here?"

    def test_brackets_inside_question_are_kept(self):
        parsed = parse_marked_response("[FEEDBACK: Good.] [QUESTION: How would you read arr[i] safely in Python?]")
        assert parsed.feedback == "Good."
        assert parsed.question == "How would you read arr[i] safely in Python?"

    def test_nested_brackets_split_across_tokens(self):
        parser = MarkerStreamParser()
        for token in ["[QUESTION: What does m[", "k][0", "] return?", "] trailing"]:
            parser.feed(token)
        assert parser.state == ParserState.SEEKING
        assert parser.finish().question == "What does m[k][0] return?"

    def test_empty_response(self):
        parsed = parse_marked_response(None)
        assert parsed == ("", "", "")
