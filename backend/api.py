# backend/api.py
"""
HTTP and WebSocket surface of the interview coaching backend.

Endpoints:
- POST /api/ai/interview                 next interviewer turn (text mode)
- GET  /api/ai/initial-question/{mode}   greeting + opening question for a job
- POST /api/ai/tts                       speech for a short piece of text
- POST /api/ai/generate-interview-feedback  end-of-interview evaluation
- GET  /api/ai/test                      active text provider
- WS   /api/voice-stream                 live voice interview session
"""

from dotenv import load_dotenv
from pathlib import Path

# Load .env from this file's directory
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)

import base64
import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from starlette.websockets import WebSocketState

from config import Settings, get_settings
from models import InterviewMode, PlanTier, Turn
from services.interview_feedback import FeedbackGenerator
from services.interview_orchestrator import (
    InterviewInputError,
    InterviewOrchestrator,
    build_interview_context,
)
from services.live_transcription import TranscriberFactory, create_live_transcriber
from services.llm_client import GenerationClient, GenerationError, get_generation_client
from services.summary_builder import build_job_summary, build_resume_summary
from services.text_classifiers import strip_markup
from services.tts_service import SpeechSynthesisError, TTSService, get_tts_service
from services.voice_stream_session import VoiceStreamSession

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ---------- FastAPI & CORS ----------
app = FastAPI(title="AI Interview Coach")
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Dependencies ----------
def get_app_settings() -> Settings:
    return get_settings()


def get_client(settings: Settings = Depends(get_app_settings)) -> GenerationClient:
    return get_generation_client(settings)


def get_orchestrator(
    client: GenerationClient = Depends(get_client),
    settings: Settings = Depends(get_app_settings),
) -> InterviewOrchestrator:
    return InterviewOrchestrator(
        client,
        model=settings.question_model,
        max_generation_calls=settings.max_generation_calls,
    )


def get_feedback_generator(
    client: GenerationClient = Depends(get_client),
    settings: Settings = Depends(get_app_settings),
) -> FeedbackGenerator:
    return FeedbackGenerator(client, model=settings.question_model)


def get_tts(settings: Settings = Depends(get_app_settings)) -> TTSService:
    return get_tts_service(settings)


def get_transcriber_factory() -> TranscriberFactory:
    return create_live_transcriber


# ---------- Schemas ----------
class ConversationTurn(BaseModel):
    speaker: str = "interviewer"
    text: str = ""


class InterviewReq(BaseModel):
    userAnswer: str = ""
    interviewMode: str = "moderate"
    plan: Optional[str] = None
    jobTitle: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    jobDescription: Optional[str] = None
    skills: List[str] = []
    resumeAnalysis: Optional[Dict[str, Any]] = None
    resumeText: Optional[str] = None
    conversation: List[ConversationTurn] = []
    batchCount: Any = 1
    currentQuestion: Optional[str] = None


class InterviewResp(BaseModel):
    response: str
    responses: Optional[List[str]] = None


class InitialQuestionResp(BaseModel):
    question: str
    mode: str
    jobContext: Dict[str, Any]
    hasResumeContext: bool


class FeedbackReq(BaseModel):
    conversation: List[ConversationTurn] = []
    mode: Optional[str] = None
    plan: Optional[str] = None
    jobTitle: Optional[str] = None
    company: Optional[str] = None
    jobDescription: Optional[str] = None


class FeedbackResp(BaseModel):
    feedback: Dict[str, Any]
    mode: str
    jobContext: Dict[str, Any]


class TTSReq(BaseModel):
    text: str


class TTSResp(BaseModel):
    audioBase64: str
    contentType: str


# ---------- Helpers ----------
def _skills_from_query(skills: Optional[str]) -> List[str]:
    return [s.strip() for s in (skills or "").split(",") if s.strip()]


# ---------- Interview ----------
@app.post("/api/ai/interview", response_model=InterviewResp, response_model_exclude_none=True)
async def interview(
    req: InterviewReq,
    orchestrator: InterviewOrchestrator = Depends(get_orchestrator),
):
    logger.info(
        "REQ /api/ai/interview: mode=%s plan=%s turns=%d batch=%s",
        req.interviewMode, req.plan, len(req.conversation), req.batchCount,
    )
    try:
        context = build_interview_context(
            plan_tier=PlanTier.parse(req.plan),
            mode=InterviewMode.parse(req.interviewMode),
            job=build_job_summary(
                role=req.jobTitle,
                company=req.company,
                location=req.location,
                description=req.jobDescription,
                skills=req.skills,
            ),
            resume=build_resume_summary(req.resumeAnalysis, req.resumeText),
            conversation=[Turn(speaker=t.speaker, text=t.text) for t in req.conversation],
            batch_count=req.batchCount,
            candidate_answer=req.userAnswer,
            current_question=req.currentQuestion,
        )
        result = await orchestrator.next_question(context)
    except InterviewInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GenerationError as e:
        logger.error(f"interview generation failed: {e}")
        raise HTTPException(status_code=502, detail="The AI provider is unavailable. Please try again.")

    return InterviewResp(response=result.response, responses=result.responses)


@app.get("/api/ai/initial-question/{mode}", response_model=InitialQuestionResp)
async def initial_question(
    mode: str,
    jobTitle: Optional[str] = Query(default=None),
    company: Optional[str] = Query(default=None),
    location: Optional[str] = Query(default=None),
    jobDescription: Optional[str] = Query(default=None),
    skills: Optional[str] = Query(default=None),
    plan: Optional[str] = Query(default=None),
    primaryRole: Optional[str] = Query(default=None),
    yearsOfExperience: Optional[str] = Query(default=None),
    resumeSkills: Optional[str] = Query(default=None),
    orchestrator: InterviewOrchestrator = Depends(get_orchestrator),
):
    interview_mode = InterviewMode.parse(mode)
    logger.info("REQ /api/ai/initial-question/%s: job=%s company=%s", interview_mode.value, jobTitle, company)

    if not (jobDescription or "").strip():
        raise HTTPException(status_code=400, detail="A job description is required to generate an opening question.")

    resume = build_resume_summary({
        "primaryRole": primaryRole,
        "yearsOfExperience": yearsOfExperience,
        "technicalSkills": _skills_from_query(resumeSkills),
    })

    try:
        context = build_interview_context(
            plan_tier=PlanTier.parse(plan),
            mode=interview_mode,
            job=build_job_summary(
                role=jobTitle,
                company=company,
                location=location,
                description=jobDescription,
                skills=_skills_from_query(skills),
            ),
            resume=resume,
        )
        validated = await orchestrator.opening_question(context)
    except InterviewInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GenerationError as e:
        logger.error(f"initial-question generation failed: {e}")
        raise HTTPException(status_code=502, detail="The AI provider is unavailable. Please try again.")

    job = context.job
    return InitialQuestionResp(
        question=validated.text,
        mode=interview_mode.value,
        jobContext={
            "jobTitle": job.role,
            "company": job.company,
            "location": job.location,
            "skills": list(job.required_skills),
        },
        hasResumeContext=context.prompt_resume is not None,
    )


# ---------- Feedback ----------
@app.post("/api/ai/generate-interview-feedback", response_model=FeedbackResp)
async def generate_interview_feedback(
    req: FeedbackReq,
    generator: FeedbackGenerator = Depends(get_feedback_generator),
):
    mode = InterviewMode.parse(req.mode)
    logger.info("REQ /api/ai/generate-interview-feedback: mode=%s turns=%d", mode.value, len(req.conversation))

    job = build_job_summary(role=req.jobTitle, company=req.company, description=req.jobDescription)
    try:
        report = await generator.generate(
            [Turn(speaker=t.speaker, text=t.text) for t in req.conversation],
            mode=mode.value,
            job=job,
            plan_tier=PlanTier.parse(req.plan),
        )
    except InterviewInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GenerationError as e:
        logger.error(f"feedback generation failed: {e}")
        raise HTTPException(status_code=502, detail="The AI provider is unavailable. Please try again.")

    return FeedbackResp(
        feedback=report.to_payload(),
        mode=mode.value,
        jobContext={"jobTitle": req.jobTitle, "company": req.company},
    )


# ---------- Speech ----------
@app.post("/api/ai/tts", response_model=TTSResp)
async def text_to_speech(req: TTSReq, tts: TTSService = Depends(get_tts)):
    if not strip_markup(req.text):
        raise HTTPException(status_code=400, detail="Text is required.")
    try:
        audio = await tts.generate_speech(req.text)
    except SpeechSynthesisError as e:
        logger.error(f"tts failed: {e}")
        raise HTTPException(status_code=502, detail="Speech synthesis failed.")
    return TTSResp(
        audioBase64=base64.b64encode(audio).decode("ascii"),
        contentType=TTSService.content_type("mp3"),
    )


# ---------- Provider status ----------
@app.get("/api/ai/test")
def provider_status(
    client: GenerationClient = Depends(get_client),
    settings: Settings = Depends(get_app_settings),
):
    return {
        "status": "ok",
        "provider": client.provider_name,
        "fellBackToPrimary": client.fell_back,
        "model": client.resolve_model(settings.question_model),
    }


# ---------- Voice stream ----------
@app.websocket("/api/voice-stream")
async def voice_stream(
    websocket: WebSocket,
    client: GenerationClient = Depends(get_client),
    tts: TTSService = Depends(get_tts),
    settings: Settings = Depends(get_app_settings),
    transcriber_factory: TranscriberFactory = Depends(get_transcriber_factory),
):
    await websocket.accept()
    logger.info("Client connected to voice stream")

    async def send_event(event: Dict[str, Any]) -> None:
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.send_json(event)

    session = VoiceStreamSession(
        send_event,
        client,
        tts=tts,
        transcriber_factory=transcriber_factory,
        settings=settings,
    )
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            if message.get("bytes") is not None:
                await session.handle_audio(message["bytes"])
            elif message.get("text") is not None:
                await session.handle_text(message["text"])
    except WebSocketDisconnect:
        logger.info("Voice stream disconnected by client")
    finally:
        await session.close()
        logger.info("Client disconnected from voice stream")
