# backend/services/voice_stream_session.py
"""
Voice Streaming Session

One long-lived session per voice connection. Audio flows in, transcripts and a
streamed interviewer reply flow back out.

Pipeline for each finished utterance:
1. Deepgram reports a final transcript
2. The session streams a short "[FEEDBACK: ..] [QUESTION: ..]" reply from the
   Generation Client, relaying every token to the client as it arrives
3. The streamed question is repaired without another model call
4. Short feedback (<= 20 chars) is converted to speech
5. The exchange is appended to a 20-entry rolling history

At most one reply is generated at a time. A final transcript that arrives while
a reply is in flight is dropped, not queued, to keep latency bounded.
"""

import asyncio
import base64
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from config import Settings, get_settings
from models import InterviewMode, JobSummary
from prompts.interview_prompts import PromptTemplates
from services.interviewer_personality import InterviewerPersonality, get_interviewer_personality
from services.live_transcription import (
    LiveTranscriber,
    TranscriberFactory,
    TranscriptionError,
    create_live_transcriber,
)
from services.llm_client import GenerationClient, GenerationError
from services.regeneration_loop import FallbackQuestions, RegenerationLoop
from services.stream_parser import MarkerStreamParser, ParsedResponse
from services.summary_builder import build_job_summary
from services.tts_service import SpeechSynthesisError, TTSService

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SendEvent = Callable[[Dict[str, Any]], Awaitable[None]]


class VoiceStreamSession:
    """
    State and event handling for one voice connection.

    Attributes:
        mode: Interview mode chosen at start_stream
        job: Job summary built from the client's jobContext
        conversation_history: Chat-style messages, at most HISTORY_LIMIT entries
        is_processing: True while a reply is being generated
    """

    HISTORY_LIMIT = 20
    RECENT_QUESTION_LIMIT = 3
    VOICE_TEMPERATURE = 0.7
    VOICE_MAX_TOKENS = 120

    def __init__(
        self,
        send: SendEvent,
        client: GenerationClient,
        tts: Optional[TTSService] = None,
        transcriber_factory: TranscriberFactory = create_live_transcriber,
        settings: Optional[Settings] = None,
        personality: Optional[InterviewerPersonality] = None
    ):
        self.send = send
        self.client = client
        self.tts = tts
        self.transcriber_factory = transcriber_factory
        self.settings = settings or get_settings()
        self.personality = personality or get_interviewer_personality()
        self.loop = RegenerationLoop(client)

        self.chat_id: Optional[str] = None
        self.mode = InterviewMode.MODERATE
        self.job_context: Dict[str, Any] = {}
        self.job: Optional[JobSummary] = None
        self.conversation_history: List[Dict[str, str]] = []
        self.recent_questions: List[str] = []
        self.is_processing = False

        self.transcriber: Optional[LiveTranscriber] = None
        self._processing_task: Optional[asyncio.Task] = None

    # ==================== Client messages ====================

    async def handle_text(self, raw: str) -> None:
        """Dispatch one JSON control message."""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed control message")
            return
        if not isinstance(data, dict):
            logger.warning("Ignoring non-object control message")
            return

        message_type = data.get("type")
        if message_type == "start_stream":
            await self.start_stream(data)
        elif message_type == "stop_stream":
            await self.stop_stream()
        elif message_type == "ping":
            await self.send({"type": "pong"})
        else:
            logger.info(f"Unknown message type: {message_type}")

    async def handle_audio(self, chunk: bytes) -> None:
        """Forward a binary audio frame to the live transcriber."""
        if self.transcriber is not None:
            await self.transcriber.send_audio(chunk)

    async def start_stream(self, data: Dict[str, Any]) -> None:
        self.chat_id = data.get("chatId")
        self.mode = InterviewMode.parse(data.get("mode"))
        job_context = data.get("jobContext")
        self.job_context = job_context if isinstance(job_context, dict) else {}
        self.job = build_job_summary(
            role=self.job_context.get("jobTitle"),
            company=self.job_context.get("company"),
            location=self.job_context.get("location"),
            description=self.job_context.get("jobDescription") or self.job_context.get("description"),
            skills=self.job_context.get("skills"),
        )

        await self._close_transcriber()
        transcriber = self.transcriber_factory(
            self.settings.deepgram_api_key,
            self.on_partial_transcript,
            self.on_final_transcript,
            self.on_transcription_error,
        )
        try:
            await transcriber.connect()
        except TranscriptionError as e:
            logger.error(f"Failed to setup live transcription: {e}")
            await self.send({"type": "error", "message": "Failed to initialize speech recognition"})
            return

        self.transcriber = transcriber
        logger.info(f"Voice stream started (chat={self.chat_id}, mode={self.mode.value})")
        await self.send({"type": "stream_ready", "message": "Voice streaming initialized"})

    async def stop_stream(self) -> None:
        await self._close_transcriber()
        await self.send({"type": "stream_stopped", "message": "Voice streaming stopped"})

    # ==================== Transcriber callbacks ====================

    async def on_partial_transcript(self, text: str) -> None:
        await self.send({"type": "transcript_partial", "text": text})

    async def on_final_transcript(self, text: str) -> None:
        await self.send({"type": "transcript_final", "text": text})

        if self.is_processing:
            logger.info("Already processing a reply; dropping final transcript")
            return

        self.is_processing = True
        self._processing_task = asyncio.create_task(self._process(text))

    async def on_transcription_error(self, message: str) -> None:
        await self.send({"type": "error", "message": message})

    # ==================== Reply generation ====================

    async def _process(self, answer: str) -> None:
        try:
            await asyncio.wait_for(
                self.generate_response(answer),
                timeout=self.settings.voice_response_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error("Voice reply timed out")
            await self.send({"type": "error", "message": "Failed to generate AI response"})
        except GenerationError as e:
            logger.error(f"AI response generation error: {e}")
            await self.send({"type": "error", "message": "Failed to generate AI response"})
        finally:
            self.is_processing = False

    def build_messages(self, answer: str) -> List[Dict[str, str]]:
        job_text = self.job.to_prompt() if self.job else ""
        system_prompt = PromptTemplates.voice_system_prompt(self.mode.value, job_text)
        return (
            [{"role": "system", "content": system_prompt}]
            + list(self.conversation_history)
            + [{"role": "user", "content": answer}]
        )

    def allowed_context(self, answer: str) -> str:
        parts = [self.job.to_prompt() if self.job else ""]
        parts.extend(message["content"] for message in self.conversation_history)
        parts.append(answer)
        return "\n".join(part for part in parts if part)

    async def generate_response(self, answer: str) -> ParsedResponse:
        """
        Stream one reply to the client and send the completion event.

        Raises:
            GenerationError: If the provider stream fails
        """
        parser = MarkerStreamParser()
        async for token in self.client.stream(
            self.build_messages(answer),
            model=self.settings.voice_model,
            max_tokens=self.VOICE_MAX_TOKENS,
            temperature=self.VOICE_TEMPERATURE,
            label="voice-stream chat",
        ):
            parser.feed(token)
            await self.send({"type": "ai_response_chunk", "content": token})

        parsed = parser.finish()
        question = self.loop.repair(
            parsed.question,
            FallbackQuestions(self.job),
            self.allowed_context(answer),
            self.recent_questions,
        ).text
        feedback = parsed.feedback or self.personality.short_feedback(self.mode)

        audio_base64 = await self._feedback_audio(feedback)

        self.conversation_history.append({"role": "user", "content": answer})
        self.conversation_history.append({"role": "assistant", "content": parsed.full_text})
        if len(self.conversation_history) > self.HISTORY_LIMIT:
            self.conversation_history = self.conversation_history[-self.HISTORY_LIMIT:]
        self.recent_questions = ([question] + self.recent_questions)[:self.RECENT_QUESTION_LIMIT]

        await self.send({
            "type": "ai_response_complete",
            "feedback": feedback,
            "question": question,
            "fullResponse": parsed.full_text,
            "audioBase64": audio_base64,
            "hasAudio": audio_base64 is not None,
        })
        logger.info(f"Response complete: {feedback!r} + question")
        return ParsedResponse(feedback=feedback, question=question, full_text=parsed.full_text)

    async def _feedback_audio(self, feedback: str) -> Optional[str]:
        if self.tts is None or not self.tts.should_speak_feedback(feedback):
            logger.info("Skipping TTS - text only (too long or empty)")
            return None
        try:
            audio = await self.tts.generate_speech(feedback)
        except SpeechSynthesisError as e:
            logger.error(f"TTS generation failed: {e}")
            return None
        return base64.b64encode(audio).decode("ascii")

    # ==================== Teardown ====================

    async def _close_transcriber(self) -> None:
        transcriber, self.transcriber = self.transcriber, None
        if transcriber is not None:
            await transcriber.finish()

    async def close(self) -> None:
        """Release the transcriber and any in-flight reply; safe to call twice."""
        await self._close_transcriber()
        task, self._processing_task = self._processing_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.is_processing = False
        logger.info("Voice session closed")
