# backend/services/__init__.py
"""
Services Package for AI Interview Coach

This package contains the backend services for the interview system:

Question Pipeline:
    - text_classifiers: Regex heuristics for question shape, hallucination and repeats
    - conversation_context: Interview phase, recent questions and history rendering
    - summary_builder: Reduce job and resume records to prompt-sized summaries
    - prompt_assembler: Layered prompt construction per retry phase
    - regeneration_loop: Check / regenerate / fallback state machine
    - interview_orchestrator: Short-circuits, batch mode and clarification
    - interviewer_personality: Templated interviewer phrases
    - interview_feedback: End-of-interview scored evaluation

Providers:
    - llm_client: OpenAI / Groq chat completions behind one interface
    - tts_service: Text-to-Speech using OpenAI TTS API
    - live_transcription: Deepgram live speech-to-text

Voice Mode:
    - stream_parser: Incremental [FEEDBACK:] / [QUESTION:] marker parser
    - voice_stream_session: One live voice interview connection
"""

# Question Pipeline
from .text_classifiers import (
    check_format,
    detect_hallucinated_entities,
    enforce_question_only,
    extract_batch_questions,
    is_valid_question,
    is_repeat,
    sanitize_text
)
from .conversation_context import (
    phase,
    recent_interviewer_questions,
    build_conversation_history,
    find_last_question
)
from .summary_builder import build_job_summary, build_resume_summary
from .prompt_assembler import AssembledPrompt, PromptAssembler, RetryPhase
from .regeneration_loop import (
    FallbackQuestions,
    OpeningFallbackQuestions,
    RegenerationLoop
)
from .interview_orchestrator import (
    InterviewInputError,
    InterviewOrchestrator,
    InterviewResult,
    build_interview_context,
    get_next_interview_turn
)
from .interview_feedback import FeedbackGenerator, InterviewFeedback
from .interviewer_personality import (
    InterviewerPersonality,
    get_interviewer_personality,
    reset_interviewer_personality,
    introduction_request,
    short_feedback
)

# Providers
from .llm_client import (
    GenerationClient,
    GenerationError,
    get_generation_client,
    reset_generation_client
)
from .tts_service import (
    SpeechSynthesisError,
    TTSService,
    get_tts_service,
    reset_tts_service,
    synthesize_speech
)
from .live_transcription import (
    LiveTranscriber,
    TranscriptionError,
    create_live_transcriber
)

# Voice Mode
from .stream_parser import MarkerStreamParser, ParsedResponse, parse_marked_response
from .voice_stream_session import VoiceStreamSession

__all__ = [
    # Question Pipeline
    "check_format",
    "detect_hallucinated_entities",
    "enforce_question_only",
    "extract_batch_questions",
    "is_valid_question",
    "is_repeat",
    "sanitize_text",
    "phase",
    "recent_interviewer_questions",
    "build_conversation_history",
    "find_last_question",
    "build_job_summary",
    "build_resume_summary",
    "AssembledPrompt",
    "PromptAssembler",
    "RetryPhase",
    "FallbackQuestions",
    "OpeningFallbackQuestions",
    "RegenerationLoop",
    "InterviewInputError",
    "InterviewOrchestrator",
    "InterviewResult",
    "build_interview_context",
    "get_next_interview_turn",
    "FeedbackGenerator",
    "InterviewFeedback",
    "InterviewerPersonality",
    "get_interviewer_personality",
    "reset_interviewer_personality",
    "introduction_request",
    "short_feedback",
    # Providers
    "GenerationClient",
    "GenerationError",
    "get_generation_client",
    "reset_generation_client",
    "SpeechSynthesisError",
    "TTSService",
    "get_tts_service",
    "reset_tts_service",
    "synthesize_speech",
    "LiveTranscriber",
    "TranscriptionError",
    "create_live_transcriber",
    # Voice Mode
    "MarkerStreamParser",
    "ParsedResponse",
    "parse_marked_response",
    "VoiceStreamSession",
]
