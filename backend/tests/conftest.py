"""
Pytest configuration and shared fixtures for all tests.

This file is automatically loaded by pytest before running tests.
It sets up the test environment, loading the real .env file if available,
and provides a scripted Generation Client so no test talks to a provider.
"""

import os
import sys

# Add backend directory to path for imports FIRST
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Load the real .env file if it exists
from dotenv import load_dotenv
env_path = os.path.join(os.path.dirname(__file__), '..', '.env')
load_dotenv(env_path)

# Only set dummy values if not already set by .env
os.environ.setdefault("OPENAI_API_KEY", "test-api-key-for-testing")

import random

import pytest

from config import reset_settings
from models import InterviewContext, InterviewMode, JobSummary, PlanTier, ResumeSummary, Turn
from services.interviewer_personality import reset_interviewer_personality
from services.llm_client import reset_generation_client
from services.tts_service import reset_tts_service


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires real provider keys)"
    )


class FakeGenerationClient:
    """
    Stand-in for GenerationClient with scripted replies.

    Each entry in `responses` is returned by one complete() call; an Exception
    entry is raised instead. Every call is recorded in `calls`.
    """

    provider_name = "fake"

    def __init__(self, responses=None, stream_tokens=None, stream_error=None, fell_back=False):
        self.responses = list(responses or [])
        self.stream_tokens = list(stream_tokens or [])
        self.stream_error = stream_error
        self.fell_back = fell_back
        self.calls = []
        self.stream_calls = []

    def resolve_model(self, model):
        return model

    async def complete(self, messages, model="gpt-4o-mini", max_tokens=80, temperature=0.35, label="completion"):
        self.calls.append({
            "messages": messages,
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "label": label,
        })
        if not self.responses:
            raise AssertionError(f"Unexpected generation call: {label}")
        reply = self.responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def stream(self, messages, model="gpt-4o-mini", max_tokens=120, temperature=0.7, label="stream"):
        self.stream_calls.append({
            "messages": messages,
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "label": label,
        })
        for token in self.stream_tokens:
            yield token
        if self.stream_error is not None:
            raise self.stream_error


# ============================================================================
# FIXTURES - Reusable test setup components
# ============================================================================

@pytest.fixture(autouse=True)
def reset_singletons():
    """Fresh settings/clients per test and a deterministic phrase picker."""
    reset_settings()
    reset_generation_client()
    reset_tts_service()
    reset_interviewer_personality(random.Random(7))
    yield
    reset_settings()
    reset_generation_client()
    reset_tts_service()
    reset_interviewer_personality()


@pytest.fixture
def make_client():
    """Factory for scripted fake Generation Clients."""
    def create(*responses, **kwargs):
        return FakeGenerationClient(responses=responses, **kwargs)
    return create


@pytest.fixture
def backend_job():
    return JobSummary(
        role="Backend Engineer",
        company="Acme",
        location="Remote",
        required_skills=["Python", "Kafka", "PostgreSQL"],
        description="Build and operate Python services on Kafka and PostgreSQL.",
    )


@pytest.fixture
def resume_summary():
    return ResumeSummary(
        primary_role="Data Engineer",
        years_of_experience=4,
        top_skills=["Python", "Airflow", "Spark"],
        top_projects=["Zephyr Pipeline (Spark, Airflow)"],
        most_recent_role="Data Engineer at Globex (2021-2024)",
    )


@pytest.fixture
def context_factory(backend_job):
    """Build an InterviewContext with sensible defaults."""
    def create(**overrides):
        fields = {
            "plan_tier": PlanTier.VALUE,
            "mode": InterviewMode.MODERATE,
            "job": backend_job,
            "conversation": (
                Turn(speaker="interviewer", text="Could you briefly introduce yourself?"),
                Turn(speaker="candidate", text="I build Python services that consume Kafka topics."),
            ),
        }
        fields.update(overrides)
        return InterviewContext(**fields)
    return create
