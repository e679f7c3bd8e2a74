"""
Test suite for Interview Orchestrator

This module tests turn routing and request validation:
- Empty transcripts get the templated introduction request with no model call
- Repeat requests return the last question with an acknowledgement
- Elaborate requests make one rephrasing call, with a fallback on failure
- Skip requests run the full loop with the change-topic user message
- Batch requests return up to three questions from a single call; clarifications
  in a batch request still fill `responses`
- Opening questions combine a greeting with a validated question
- Batch count parsing and plan-tier context rules

Run tests with: pytest backend/tests/test_interview_orchestrator.py -v
"""

import pytest
import sys
import os

# Add backend directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from models import InterviewMode, JobSummary, PlanTier, Turn
from prompts.interview_prompts import PromptTemplates
from services.interview_orchestrator import (
    CONTEXT_REQUIRED,
    JOB_DESCRIPTION_REQUIRED,
    STARTER_JOB_REQUIRED,
    InterviewInputError,
    InterviewOrchestrator,
    build_interview_context,
    get_next_interview_turn,
    parse_batch_count,
)
from services.interviewer_personality import InterviewerPersonality
from services.llm_client import GenerationError
from services.text_classifiers import is_valid_question, word_count


LAST_QUESTION = "What is your experience with Kafka?"


# ============================================================================
# FIXTURES - Reusable test setup components
# ============================================================================

@pytest.fixture
def conversation_with():
    """Transcript ending in the given candidate utterance after LAST_QUESTION."""
    def create(utterance):
        return (
            Turn(speaker="interviewer", text="Could you briefly introduce yourself?"),
            Turn(speaker="candidate", text="I build Python services."),
            Turn(speaker="interviewer", text=LAST_QUESTION),
            Turn(speaker="candidate", text=utterance),
        )
    return create


@pytest.fixture
def orchestrator_factory():
    def create(client):
        return InterviewOrchestrator(client)
    return create


# ============================================================================
# TEST CLASS: Turn routing
# ============================================================================

class TestTurnRouting:
    """Tests for next_question path selection"""

    @pytest.mark.asyncio
    async def test_empty_conversation_returns_introduction(self, make_client, context_factory, orchestrator_factory):
        client = make_client()
        result = await orchestrator_factory(client).next_question(context_factory(conversation=()))

        assert result.kind == "introduction"
        assert "Backend Engineer" in result.response
        assert result.response.endswith("?")
        assert word_count(result.response) <= 40
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_introduction_follows_mode(self, make_client, context_factory, orchestrator_factory):
        context = context_factory(conversation=(), mode=InterviewMode.STRICT)
        result = await orchestrator_factory(make_client()).next_question(context)

        assert result.response.startswith("Thanks for joining. Let's begin.")

    @pytest.mark.asyncio
    async def test_repeat_request(self, make_client, context_factory, conversation_with, orchestrator_factory):
        client = make_client()
        context = context_factory(conversation=conversation_with("Sorry, can you repeat that?"))

        result = await orchestrator_factory(client).next_question(context)

        assert result.kind == "clarification"
        assert result.response.endswith(LAST_QUESTION)
        assert any(result.response.startswith(a) for a in InterviewerPersonality.REPEAT_ACKNOWLEDGMENTS)
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_repeat_without_question(self, make_client, context_factory, orchestrator_factory):
        context = context_factory(conversation=(Turn(speaker="candidate", text="Can you repeat that?"),))

        result = await orchestrator_factory(make_client()).next_question(context)

        assert result.response == InterviewerPersonality.NO_QUESTION_TO_CLARIFY

    @pytest.mark.asyncio
    async def test_batch_repeat_request_fills_responses(self, make_client, context_factory, conversation_with, orchestrator_factory):
        client = make_client()
        context = context_factory(conversation=conversation_with("Can you repeat that?"), batch_count=3)

        result = await orchestrator_factory(client).next_question(context)

        assert result.kind == "clarification"
        assert result.responses == [result.response]
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_batch_elaborate_and_missing_question_fill_responses(self, make_client, context_factory, conversation_with, orchestrator_factory):
        client = make_client("How have you used Kafka in your recent work?")
        elaborate = context_factory(conversation=conversation_with("Could you elaborate?"), batch_count=2)
        orphan = context_factory(conversation=(Turn(speaker="candidate", text="Can you repeat that?"),), batch_count=2)

        rephrased = await orchestrator_factory(client).next_question(elaborate)
        missing = await orchestrator_factory(client).next_question(orphan)

        assert rephrased.responses == ["How have you used Kafka in your recent work?"]
        assert missing.responses == [InterviewerPersonality.NO_QUESTION_TO_CLARIFY]

    @pytest.mark.asyncio
    async def test_handled_repeat_request_is_not_replayed(self, make_client, context_factory, orchestrator_factory):
        client = make_client("How do you monitor consumer lag in Kafka?")
        conversation = (
            Turn(speaker="interviewer", text=LAST_QUESTION),
            Turn(speaker="candidate", text="Can you repeat that?"),
            Turn(speaker="interviewer", text="Sure, let me repeat that: " + LAST_QUESTION),
        )

        result = await orchestrator_factory(client).next_question(context_factory(conversation=conversation))

        assert result.kind == "question"
        assert result.response == "How do you monitor consumer lag in Kafka?"
        assert len(client.calls) == 1

    @pytest.mark.asyncio
    async def test_elaborate_request_rephrases(self, make_client, context_factory, conversation_with, orchestrator_factory):
        client = make_client('"Which Kafka features have you used in production?"')
        context = context_factory(conversation=conversation_with("Could you elaborate?"))

        result = await orchestrator_factory(client).next_question(context)

        assert result.response == "Which Kafka features have you used in production?"
        call = client.calls[0]
        assert call["label"] == "interview:rephrase"
        assert call["temperature"] == pytest.approx(0.5)
        assert call["max_tokens"] == 150
        assert LAST_QUESTION in call["messages"][-1]["content"]

    @pytest.mark.asyncio
    async def test_elaborate_failure_uses_clarify_prefix(self, make_client, context_factory, conversation_with, orchestrator_factory):
        client = make_client(GenerationError("timeout"))
        context = context_factory(conversation=conversation_with("What do you mean?"))

        result = await orchestrator_factory(client).next_question(context)

        assert result.response == "Let me clarify: " + LAST_QUESTION

    @pytest.mark.asyncio
    async def test_elaborate_empty_reply_uses_clarify_prefix(self, make_client, context_factory, conversation_with, orchestrator_factory):
        client = make_client("   ")
        context = context_factory(conversation=conversation_with("Can you rephrase?"))

        result = await orchestrator_factory(client).next_question(context)

        assert result.response == "Let me clarify: " + LAST_QUESTION

    @pytest.mark.asyncio
    async def test_skip_request_asks_new_topic(self, make_client, context_factory, conversation_with, orchestrator_factory):
        client = make_client("How do you index PostgreSQL tables for reporting queries?")
        context = context_factory(conversation=conversation_with("let's move on"))

        result = await orchestrator_factory(client).next_question(context)

        assert result.response == "How do you index PostgreSQL tables for reporting queries?"
        assert client.calls[0]["messages"][-1]["content"] == PromptTemplates.CHANGE_TOPIC_INSTRUCTION
        assert "move on" not in result.response.lower()

    @pytest.mark.asyncio
    async def test_regular_answer_runs_loop(self, make_client, context_factory, conversation_with, orchestrator_factory):
        client = make_client("How do you guarantee ordering across Kafka partitions?")
        context = context_factory(conversation=conversation_with("I ran consumer groups in production."))

        result = await orchestrator_factory(client).next_question(context)

        assert result.kind == "question"
        assert result.responses is None
        assert result.response == "How do you guarantee ordering across Kafka partitions?"
        assert client.calls[0]["label"] == "interview:initial"

    @pytest.mark.asyncio
    async def test_convenience_function(self, make_client, context_factory):
        result = await get_next_interview_turn(make_client(), context_factory(conversation=()))
        assert result.kind == "introduction"


# ============================================================================
# TEST CLASS: Batch mode
# ============================================================================

class TestBatchMode:
    """Tests for batch question generation"""

    @pytest.mark.asyncio
    async def test_batch_of_three(self, make_client, context_factory, orchestrator_factory):
        client = make_client(
            "How do you partition Kafka topics?|||How do you tune PostgreSQL queries?|||How do you test Python services?"
        )
        result = await orchestrator_factory(client).next_question(context_factory(batch_count=3))

        assert result.kind == "batch"
        assert result.responses == [
            "How do you partition Kafka topics?",
            "How do you tune PostgreSQL queries?",
            "How do you test Python services?",
        ]
        assert result.response == result.responses[0]
        assert len(client.calls) == 1
        assert client.calls[0]["max_tokens"] == 220
        assert client.calls[0]["label"] == "interview:batch"

    @pytest.mark.asyncio
    async def test_batch_without_delimiters(self, make_client, context_factory, orchestrator_factory):
        client = make_client("Tell me about Kafka consumer groups")
        result = await orchestrator_factory(client).next_question(context_factory(batch_count=2))

        assert result.responses == ["Tell me about Kafka consumer groups?"]

    @pytest.mark.asyncio
    async def test_empty_batch_uses_fallback(self, make_client, context_factory, orchestrator_factory):
        client = make_client("")
        result = await orchestrator_factory(client).next_question(context_factory(batch_count=3))

        assert len(result.responses) == 1
        assert is_valid_question(result.response)


# ============================================================================
# TEST CLASS: Opening question
# ============================================================================

class TestOpeningQuestion:
    """Tests for opening_question"""

    @pytest.mark.asyncio
    async def test_opening_combines_greeting(self, make_client, context_factory, orchestrator_factory):
        client = make_client("What is your experience running Kafka in production?")
        validated = await orchestrator_factory(client).opening_question(context_factory(conversation=()))

        assert validated.text.endswith("What is your experience running Kafka in production?")
        assert "Backend Engineer" in validated.text
        assert word_count(validated.text) <= 40
        assert client.calls[0]["label"] == "opening:initial"

    @pytest.mark.asyncio
    async def test_opening_requires_description(self, make_client, context_factory, orchestrator_factory):
        client = make_client()
        context = context_factory(job=JobSummary(role="Backend Engineer", company="Acme"))

        with pytest.raises(InterviewInputError, match=JOB_DESCRIPTION_REQUIRED):
            await orchestrator_factory(client).opening_question(context)
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_opening_provider_error_propagates(self, make_client, context_factory, orchestrator_factory):
        client = make_client(GenerationError("auth failed"))

        with pytest.raises(GenerationError):
            await orchestrator_factory(client).opening_question(context_factory())


# ============================================================================
# TEST CLASS: Request validation
# ============================================================================

class TestRequestValidation:
    """Tests for parse_batch_count and build_interview_context"""

    @pytest.mark.parametrize("value,expected", [
        (None, 1),
        ("", 1),
        (1, 1),
        ("2", 2),
        (2.0, 2),
        (5, 3),
        (0, 1),
        (-4, 1),
    ])
    def test_parse_batch_count(self, value, expected):
        assert parse_batch_count(value) == expected

    @pytest.mark.parametrize("value", ["abc", 2.5, True, [3]])
    def test_parse_batch_count_rejects(self, value):
        with pytest.raises(InterviewInputError):
            parse_batch_count(value)

    def test_starter_requires_job(self, resume_summary):
        with pytest.raises(InterviewInputError, match=STARTER_JOB_REQUIRED):
            build_interview_context(PlanTier.STARTER, InterviewMode.MODERATE, None, resume_summary)

    def test_starter_empty_job_counts_as_missing(self):
        with pytest.raises(InterviewInputError):
            build_interview_context(PlanTier.STARTER, InterviewMode.MODERATE, JobSummary(), None)

    def test_starter_drops_resume(self, backend_job, resume_summary):
        context = build_interview_context(PlanTier.STARTER, InterviewMode.STRICT, backend_job, resume_summary)
        assert context.resume is None
        assert context.job == backend_job

    def test_value_requires_job_or_resume(self):
        with pytest.raises(InterviewInputError, match=CONTEXT_REQUIRED):
            build_interview_context(PlanTier.VALUE, InterviewMode.MODERATE, None, None)

    def test_value_with_resume_only(self, resume_summary):
        context = build_interview_context(PlanTier.UNLIMITED, InterviewMode.FRIENDLY, None, resume_summary)
        assert context.job is None
        assert context.prompt_resume == resume_summary

    def test_batch_count_is_clamped(self, backend_job):
        context = build_interview_context(
            PlanTier.VALUE, InterviewMode.MODERATE, backend_job, None, batch_count="9"
        )
        assert context.batch_count == 3
