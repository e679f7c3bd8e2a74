# backend/services/tts_service.py
"""
Speech Synthesis Service

Turns interviewer text into audio through OpenAI's speech endpoint. Audio
always goes through OpenAI, whichever provider generates the text.

Used by:
- POST /api/ai/tts for arbitrary interviewer text
- Voice sessions, for the one- or two-word instant feedback only

Features:
- Voice, speed and model defaults from Settings
- Bounded LRU cache, since the feedback phrase pools are small
- Feedback length gate so voice replies never wait on long synthesis
"""

import hashlib
import logging
from collections import OrderedDict
from typing import NamedTuple, Optional

import openai
from openai import AsyncOpenAI

from config import Settings, get_settings
from services.text_classifiers import clamp_words, strip_markup

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class SpeechSynthesisError(RuntimeError):
    """The speech provider failed or the text cannot be spoken."""


class SpeechOptions(NamedTuple):
    voice: str
    speed: float
    output_format: str
    model: str

    def cache_key(self, text: str) -> str:
        raw = f"{self.model}|{self.voice}|{self.speed}|{self.output_format}|{text}"
        return hashlib.md5(raw.encode()).hexdigest()


class TTSService:
    """
    Speech synthesis with request validation and a small result cache.

    Attributes:
        client: AsyncOpenAI client, or None when no key is configured
        default_voice: Voice used when a request names none (or an unknown one)
        default_speed: Speaking rate used when a request names none
        default_model: "tts-1" (low latency) or "tts-1-hd"
    """

    VOICES = ("alloy", "echo", "fable", "onyx", "nova", "shimmer")

    # Output format -> HTTP content type
    FORMATS = {
        "mp3": "audio/mpeg",
        "opus": "audio/opus",
        "aac": "audio/aac",
        "flac": "audio/flac",
    }

    # Provider input limit, in characters
    MAX_TEXT_LENGTH = 4096
    MAX_SPOKEN_WORDS = 200

    # Voice mode speaks feedback only up to this length
    FEEDBACK_AUDIO_MAX_CHARS = 20

    SPEED_RANGE = (0.25, 4.0)

    def __init__(
        self,
        api_key: Optional[str] = None,
        voice: str = "nova",
        speed: float = 1.1,
        model: str = "tts-1",
        timeout: float = 30.0,
        max_cache_entries: int = 64,
        client=None
    ):
        if client is None and api_key:
            client = AsyncOpenAI(api_key=api_key, timeout=timeout)
        if client is None:
            logger.warning("OPENAI_API_KEY missing - speech synthesis disabled")

        self.client = client
        self.default_voice = voice if voice in self.VOICES else "nova"
        self.default_speed = speed
        self.default_model = model
        self.max_cache_entries = max_cache_entries
        self._cache: "OrderedDict[str, bytes]" = OrderedDict()

    @classmethod
    def from_settings(cls, settings: Settings) -> "TTSService":
        return cls(
            api_key=settings.openai_api_key,
            voice=settings.tts_voice,
            speed=settings.tts_speed,
            model=settings.tts_model,
            timeout=settings.llm_timeout_seconds,
        )

    @classmethod
    def content_type(cls, output_format: str = "mp3") -> str:
        return cls.FORMATS.get(output_format, cls.FORMATS["mp3"])

    # ==================== Request preparation ====================

    def prepare_text(self, text: Optional[str]) -> str:
        """Strip markup and cap length; empty means there is nothing to speak."""
        spoken = clamp_words(strip_markup(text), self.MAX_SPOKEN_WORDS)
        if len(spoken) > self.MAX_TEXT_LENGTH:
            logger.warning(f"Spoken text is {len(spoken)} chars; cutting to {self.MAX_TEXT_LENGTH}")
            spoken = spoken[:self.MAX_TEXT_LENGTH]
        return spoken

    def resolve_options(
        self,
        voice: Optional[str] = None,
        speed: Optional[float] = None,
        output_format: str = "mp3",
        model: Optional[str] = None
    ) -> SpeechOptions:
        """Replace unknown or out-of-range options with the configured defaults."""
        if voice and voice not in self.VOICES:
            logger.warning(f"Unsupported voice {voice!r}; using {self.default_voice!r}")
            voice = None
        if output_format not in self.FORMATS:
            logger.warning(f"Unsupported format {output_format!r}; using mp3")
            output_format = "mp3"
        low, high = self.SPEED_RANGE
        rate = self.default_speed if speed is None else speed
        return SpeechOptions(
            voice=voice or self.default_voice,
            speed=min(high, max(low, rate)),
            output_format=output_format,
            model=model or self.default_model,
        )

    # ==================== Synthesis ====================

    async def generate_speech(
        self,
        text: str,
        voice: Optional[str] = None,
        speed: Optional[float] = None,
        output_format: str = "mp3",
        model: Optional[str] = None
    ) -> bytes:
        """
        Synthesize `text` and return the encoded audio.

        Args:
            text: Interviewer text; markup is removed before synthesis
            voice: One of VOICES
            speed: Speaking rate, clamped to SPEED_RANGE
            output_format: Key of FORMATS
            model: Speech model override

        Returns:
            Audio bytes

        Raises:
            SpeechSynthesisError: Nothing to speak, no API key, or provider failure
        """
        spoken = self.prepare_text(text)
        if not spoken:
            raise SpeechSynthesisError("Text cannot be empty")

        options = self.resolve_options(voice, speed, output_format, model)
        key = options.cache_key(spoken)
        if key in self._cache:
            self._cache.move_to_end(key)
            logger.info(f"Speech cache hit ({len(spoken)} chars)")
            return self._cache[key]

        if self.client is None:
            raise SpeechSynthesisError("OPENAI_API_KEY is not configured")

        logger.info(f"Synthesizing {len(spoken)} chars with {options.model}/{options.voice}")
        try:
            response = await self.client.audio.speech.create(
                model=options.model,
                voice=options.voice,
                input=spoken,
                speed=options.speed,
                response_format=options.output_format,
            )
        except openai.OpenAIError as e:
            logger.error(f"Speech synthesis failed: {e}")
            raise SpeechSynthesisError(f"Speech synthesis failed: {e}") from e

        audio = response.content
        self._remember(key, audio)
        return audio

    def _remember(self, key: str, audio: bytes) -> None:
        self._cache[key] = audio
        while len(self._cache) > self.max_cache_entries:
            self._cache.popitem(last=False)

    def should_speak_feedback(self, feedback: Optional[str]) -> bool:
        """Only short voice-mode feedback is synthesized."""
        length = len((feedback or "").strip())
        return 0 < length <= self.FEEDBACK_AUDIO_MAX_CHARS

    def clear_cache(self) -> None:
        self._cache.clear()


# ==================== Singleton Instance ====================

_tts_service: Optional[TTSService] = None


def get_tts_service(settings: Optional[Settings] = None) -> TTSService:
    """Get the process-wide TTSService, building it from settings on first use."""
    global _tts_service
    if _tts_service is None:
        _tts_service = TTSService.from_settings(settings or get_settings())
    return _tts_service


def reset_tts_service() -> None:
    global _tts_service
    _tts_service = None


async def synthesize_speech(text: str) -> bytes:
    """
    Speak `text` with the configured voice.

    Raises:
        SpeechSynthesisError: On empty text or provider failure
    """
    return await get_tts_service().generate_speech(text)
