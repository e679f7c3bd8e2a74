"""
Test suite for Interview Feedback Generator

This module tests the end-of-interview report:
- Full reports keep tips (max 4) and per-area scores
- Starter reports keep two strengths/improvements and drop tips and areas
- JSON wrapped in code fences or prose is still parsed
- Unparseable output comes back raw with parse_error set
- Empty transcripts and provider failures raise

Run tests with: pytest backend/tests/test_interview_feedback.py -v
"""

import json
import pytest
import sys
import os

# Add backend directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from models import PlanTier, Turn
from services.interview_feedback import (
    FeedbackGenerator,
    extract_json_object,
    render_transcript,
)
from services.interview_orchestrator import InterviewInputError
from services.llm_client import GenerationError


# ============================================================================
# FIXTURES - Reusable test setup components
# ============================================================================

@pytest.fixture
def transcript():
    return (
        Turn(speaker="interviewer", text="How do you partition Kafka topics?"),
        Turn(speaker="candidate", text="By customer id, so ordering holds per customer."),
        Turn(speaker="interviewer", text=""),
    )


@pytest.fixture
def report_json():
    return json.dumps({
        "overallScore": 7.6,
        "summary": "Solid Kafka fundamentals.",
        "strengths": ["Clear partitioning rationale", "Concise", "Knows ordering", "Extra"],
        "improvements": ["Mention consumer lag", "Discuss rebalancing", "Quantify scale"],
        "tips": ["a", "b", "c", "d", "e"],
        "communication": {"score": 8, "feedback": "Clear."},
        "technicalKnowledge": {"score": "12", "feedback": "Good depth."},
        "problemSolving": {"score": 6, "feedback": "Reasonable."},
        "professionalism": {"score": 9, "feedback": "Calm."},
        "recommendation": "Practice failure scenarios.",
    })


# ============================================================================
# TEST CLASS: Report shaping
# ============================================================================

class TestReportShaping:
    """Tests for plan-tier report shapes"""

    @pytest.mark.asyncio
    async def test_full_report(self, make_client, transcript, report_json, backend_job):
        client = make_client(report_json)

        report = await FeedbackGenerator(client).generate(transcript, mode="strict", job=backend_job)

        assert report.tier == "full"
        assert report.overall_score == 8
        assert report.strengths == ["Clear partitioning rationale", "Concise", "Knows ordering"]
        assert report.tips == ["a", "b", "c", "d"]
        assert report.technical_knowledge.score == 10
        assert report.parse_error is False

        call = client.calls[0]
        assert call["label"] == "feedback"
        assert call["max_tokens"] == 400
        assert call["temperature"] == pytest.approx(0.7)
        assert "Target job: Backend Engineer" in call["messages"][0]["content"]
        assert "Evaluate this strict interview" in call["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_starter_report_is_basic(self, make_client, transcript, report_json):
        report = await FeedbackGenerator(make_client(report_json)).generate(
            transcript, plan_tier=PlanTier.STARTER
        )

        payload = report.to_payload()
        assert payload["tier"] == "basic"
        assert payload["strengths"] == ["Clear partitioning rationale", "Concise"]
        assert payload["improvements"] == ["Mention consumer lag", "Discuss rebalancing"]
        assert payload["tips"] == []
        assert "communication" not in payload

    @pytest.mark.asyncio
    async def test_fenced_json_and_missing_summary(self, make_client, transcript):
        raw = "Here you go:\n```json\n{\"overallScore\": 5, \"strengths\": \"not a list\"}\n```"

        report = await FeedbackGenerator(make_client(raw)).generate(transcript)

        assert report.overall_score == 5
        assert report.summary == "Summary unavailable."
        assert report.strengths == []

    @pytest.mark.asyncio
    async def test_unparseable_output_is_returned_raw(self, make_client, transcript):
        report = await FeedbackGenerator(make_client("The candidate did fine overall.")).generate(transcript)

        payload = report.to_payload()
        assert payload["parseError"] is True
        assert payload["rawFeedback"] == "The candidate did fine overall."


# ============================================================================
# TEST CLASS: Errors and helpers
# ============================================================================

class TestErrorsAndHelpers:
    """Tests for input errors, provider errors and parsing helpers"""

    @pytest.mark.asyncio
    async def test_empty_conversation_raises(self, make_client):
        client = make_client()
        with pytest.raises(InterviewInputError):
            await FeedbackGenerator(client).generate([Turn(speaker="candidate", text="   ")])
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, make_client, transcript):
        with pytest.raises(GenerationError):
            await FeedbackGenerator(make_client(GenerationError("timeout"))).generate(transcript)

    def test_render_transcript_skips_empty_turns(self, transcript):
        assert render_transcript(transcript) == (
            "Interviewer: How do you partition Kafka topics?\n\n"
            "Candidate: By customer id, so ordering holds per customer."
        )

    def test_extract_rejects_arrays(self):
        with pytest.raises(ValueError):
            extract_json_object("[1, 2, 3]")
