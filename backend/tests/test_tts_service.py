# backend/tests/test_tts_service.py
"""
Test suite for TTS Service

Tests:
1. Generate speech with the configured defaults
2. Cache hits avoid a second API call; the cache is bounded
3. Unknown voices/formats fall back, speed is clamped
4. Empty text, missing key and provider errors raise SpeechSynthesisError
5. Feedback length gate for voice mode

Run with: pytest backend/tests/test_tts_service.py -v
"""

import os
import sys
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import httpx
import openai

from config import Settings
from services.tts_service import (
    SpeechSynthesisError,
    TTSService,
    get_tts_service,
    synthesize_speech,
)


# ============================================================================
# FIXTURES - Reusable test setup components
# ============================================================================

@pytest.fixture
def speech_client():
    client = MagicMock()
    client.audio.speech.create = AsyncMock(return_value=SimpleNamespace(content=b"ID3-audio"))
    return client


@pytest.fixture
def tts(speech_client):
    return TTSService(client=speech_client, max_cache_entries=2)


# ============================================================================
# TEST CLASS: Generation
# ============================================================================

class TestGeneration:
    """Tests for generate_speech"""

    @pytest.mark.asyncio
    async def test_generate_with_defaults(self, tts, speech_client):
        audio = await tts.generate_speech("**Good.**")

        assert audio == b"ID3-audio"
        kwargs = speech_client.audio.speech.create.call_args.kwargs
        assert kwargs["input"] == "Good."
        assert kwargs["voice"] == "nova"
        assert kwargs["model"] == "tts-1"
        assert kwargs["speed"] == 1.1
        assert kwargs["response_format"] == "mp3"

    @pytest.mark.asyncio
    async def test_cache_hit(self, tts, speech_client):
        await tts.generate_speech("Got it.")
        await tts.generate_speech("Got it.")

        assert speech_client.audio.speech.create.await_count == 1

    @pytest.mark.asyncio
    async def test_cache_is_bounded(self, tts, speech_client):
        for text in ("One.", "Two.", "Three.", "One."):
            await tts.generate_speech(text)

        assert speech_client.audio.speech.create.await_count == 4

        tts.clear_cache()
        await tts.generate_speech("Three.")
        assert speech_client.audio.speech.create.await_count == 5

    @pytest.mark.asyncio
    async def test_invalid_options_fall_back(self, tts, speech_client):
        await tts.generate_speech("Okay.", voice="robot", speed=9.0, output_format="wav")

        kwargs = speech_client.audio.speech.create.call_args.kwargs
        assert kwargs["voice"] == "nova"
        assert kwargs["speed"] == TTSService.SPEED_RANGE[1]
        assert kwargs["response_format"] == "mp3"

    @pytest.mark.asyncio
    async def test_long_text_clamped_to_word_limit(self, tts, speech_client):
        await tts.generate_speech(" ".join(["word"] * 300))

        spoken = speech_client.audio.speech.create.call_args.kwargs["input"]
        assert len(spoken.split()) == TTSService.MAX_SPOKEN_WORDS

    def test_content_type(self):
        assert TTSService.content_type("opus") == "audio/opus"
        assert TTSService.content_type("unknown") == "audio/mpeg"


# ============================================================================
# TEST CLASS: Errors
# ============================================================================

class TestErrors:
    """Tests for SpeechSynthesisError paths"""

    @pytest.mark.asyncio
    async def test_empty_text(self, tts, speech_client):
        with pytest.raises(SpeechSynthesisError):
            await tts.generate_speech("   ")
        speech_client.audio.speech.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_key(self):
        with pytest.raises(SpeechSynthesisError, match="OPENAI_API_KEY"):
            await TTSService(api_key=None).generate_speech("Hello there.")

    @pytest.mark.asyncio
    async def test_provider_error(self, tts, speech_client):
        request = httpx.Request("POST", "https://api.openai.com/v1/audio/speech")
        speech_client.audio.speech.create = AsyncMock(side_effect=openai.APIConnectionError(request=request))

        with pytest.raises(SpeechSynthesisError):
            await tts.generate_speech("Hello there.")


# ============================================================================
# TEST CLASS: Voice feedback gate and singleton
# ============================================================================

class TestFeedbackGateAndSingleton:
    """Tests for should_speak_feedback and get_tts_service"""

    @pytest.mark.parametrize("feedback,expected", [
        ("Good.", True),
        ("x" * 20, True),
        ("x" * 21, False),
        ("", False),
        ("   ", False),
        (None, False),
    ])
    def test_should_speak_feedback(self, tts, feedback, expected):
        assert tts.should_speak_feedback(feedback) is expected

    def test_singleton_uses_settings(self):
        settings = Settings(openai_api_key="sk-test", tts_voice="onyx", tts_speed=0.9, tts_model="tts-1-hd")
        service = get_tts_service(settings)

        assert service is get_tts_service()
        assert service.default_voice == "onyx"
        assert service.default_speed == 0.9
        assert service.default_model == "tts-1-hd"

    @pytest.mark.asyncio
    async def test_synthesize_speech_uses_singleton(self, speech_client):
        get_tts_service(Settings()).client = speech_client

        assert await synthesize_speech("Noted.") == b"ID3-audio"
