# backend/services/interview_feedback.py
"""
Interview Feedback Generator

Produces the end-of-interview evaluation: an overall score, strengths,
improvements, tips and per-area scores, from the finished transcript.

Features:
- One Generation Client call with a fixed JSON shape in the prompt
- Tolerant parsing (code fences and prose around the JSON are ignored)
- Starter plans get the basic report: two strengths, two improvements, no tips
  or per-area scores
- Unparseable output is returned raw with parse_error set instead of failing

Usage:
    generator = FeedbackGenerator(client)
    report = await generator.generate(conversation, mode="strict", job=job)
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel

from models import JobSummary, PlanTier, Turn
from prompts.interview_prompts import PromptTemplates
from services.interview_orchestrator import InterviewInputError
from services.llm_client import GenerationClient

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

CONVERSATION_REQUIRED = "A non-empty interview conversation is required to generate feedback."

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)

# Report key -> attribute name
_AREAS = {
    "communication": "communication",
    "technicalKnowledge": "technical_knowledge",
    "problemSolving": "problem_solving",
    "professionalism": "professionalism",
}


class AreaScore(BaseModel):
    score: int = 0
    feedback: str = ""


class InterviewFeedback(BaseModel):
    """Evaluation of one finished interview."""
    tier: str = "full"
    overall_score: int = 0
    summary: str = ""
    strengths: List[str] = []
    improvements: List[str] = []
    tips: List[str] = []
    communication: Optional[AreaScore] = None
    technical_knowledge: Optional[AreaScore] = None
    problem_solving: Optional[AreaScore] = None
    professionalism: Optional[AreaScore] = None
    recommendation: str = ""
    raw_feedback: Optional[str] = None
    parse_error: bool = False

    def to_payload(self) -> Dict[str, Any]:
        """camelCase dict for API clients; absent sections are left out."""
        payload: Dict[str, Any] = {
            "tier": self.tier,
            "overallScore": self.overall_score,
            "summary": self.summary,
            "strengths": self.strengths,
            "improvements": self.improvements,
            "tips": self.tips,
            "recommendation": self.recommendation,
        }
        for key, attr in _AREAS.items():
            area = getattr(self, attr)
            if area is not None:
                payload[key] = area.model_dump()
        if self.parse_error:
            payload["parseError"] = True
            payload["rawFeedback"] = self.raw_feedback
        return payload


# ==================== Parsing helpers ====================

def _score(value: Any) -> int:
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        return 0
    return max(1, min(10, score))


def _strings(value: Any, limit: int) -> List[str]:
    if not isinstance(value, list):
        return []
    items = [str(item).strip() for item in value if str(item or "").strip()]
    return items[:limit]


def _area(value: Any) -> Optional[AreaScore]:
    if not isinstance(value, dict):
        return None
    return AreaScore(score=_score(value.get("score")), feedback=str(value.get("feedback") or "").strip())


def extract_json_object(raw_text: Optional[str]) -> Dict[str, Any]:
    """
    Pull the JSON object out of a model reply.

    Raises:
        ValueError: If no JSON object can be decoded
    """
    text = (raw_text or "").strip()
    if text.startswith("```"):
        text = text.split("```")[1]
        if text.startswith("json"):
            text = text[4:]
        text = text.strip()

    match = _JSON_OBJECT_RE.search(text)
    data = json.loads(match.group(0) if match else text)
    if not isinstance(data, dict):
        raise ValueError("feedback JSON is not an object")
    return data


def render_transcript(conversation: Sequence[Turn]) -> str:
    """Whole transcript, one labelled paragraph per turn."""
    return "\n\n".join(
        f"{'Interviewer' if turn.is_interviewer else 'Candidate'}: {turn.text.strip()}"
        for turn in conversation
        if turn.text.strip()
    )


# ==================== Generator ====================

class FeedbackGenerator:
    """
    Builds the feedback prompt, calls the model and shapes the report.

    Attributes:
        client: Generation Client used for the single call
        model: Chat model name
    """

    MAX_TOKENS = 400
    TEMPERATURE = 0.7
    BASIC_ITEMS = 2
    FULL_ITEMS = 3
    MAX_TIPS = 4

    def __init__(self, client: GenerationClient, model: str = "gpt-4o-mini"):
        self.client = client
        self.model = model

    async def generate(
        self,
        conversation: Sequence[Turn],
        mode: Optional[str] = None,
        job: Optional[JobSummary] = None,
        plan_tier: PlanTier = PlanTier.VALUE
    ) -> InterviewFeedback:
        """
        Evaluate a finished interview.

        Args:
            conversation: Full transcript, oldest turn first
            mode: Interview mode name, used in the request wording
            job: Target job, when the interview had one
            plan_tier: Starter gets the basic report

        Returns:
            InterviewFeedback

        Raises:
            InterviewInputError: If the transcript has no text
            GenerationError: If the model call fails
        """
        transcript = render_transcript(conversation)
        if not transcript:
            raise InterviewInputError(CONVERSATION_REQUIRED)

        job_text = job.to_prompt() if job is not None and not job.is_empty else ""
        logger.info(f"Generating interview feedback: {len(conversation)} turns, {len(transcript)} chars")

        raw = await self.client.complete(
            PromptTemplates.interview_feedback(transcript, mode, job_text),
            model=self.model,
            max_tokens=self.MAX_TOKENS,
            temperature=self.TEMPERATURE,
            label="feedback",
        )
        basic = plan_tier == PlanTier.STARTER

        try:
            data = extract_json_object(raw)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            logger.warning(f"Could not parse feedback JSON: {e}")
            return InterviewFeedback(tier="basic" if basic else "full", raw_feedback=raw, parse_error=True)

        report = self.shape(data, basic)
        logger.info(f"Feedback ready: tier={report.tier} overall={report.overall_score}/10")
        return report

    def shape(self, data: Dict[str, Any], basic: bool) -> InterviewFeedback:
        """Normalize parsed JSON into the report for the plan tier."""
        items = self.BASIC_ITEMS if basic else self.FULL_ITEMS
        report = InterviewFeedback(
            tier="basic" if basic else "full",
            overall_score=_score(data.get("overallScore")),
            summary=str(data.get("summary") or "").strip() or "Summary unavailable.",
            strengths=_strings(data.get("strengths"), items),
            improvements=_strings(data.get("improvements"), items),
            recommendation=str(data.get("recommendation") or "").strip(),
        )
        if basic:
            return report

        updates = {attr: _area(data.get(key)) for key, attr in _AREAS.items()}
        updates["tips"] = _strings(data.get("tips"), self.MAX_TIPS)
        return report.model_copy(update=updates)
