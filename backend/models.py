# backend/models.py
"""
Domain models for interview question generation.

All per-request inputs are immutable pydantic models. Nothing here is persisted:
job records, resume analyses and transcripts are owned by external services and
arrive already reduced to these shapes.
"""

from enum import Enum
from typing import List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

JOB_DESCRIPTION_LIMIT = 600
MAX_REQUIRED_SKILLS = 5
MAX_RESUME_SKILLS = 3
MAX_RESUME_PROJECTS = 3


class PlanTier(str, Enum):
    """Access level of the requesting user."""
    STARTER = "starter"
    VALUE = "value"
    UNLIMITED = "unlimited"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PlanTier":
        """
        Map a loosely formatted plan name onto a tier.

        "Free" is the legacy name of Starter. Unknown values resolve to the
        most restrictive tier.
        """
        name = (value or "").strip().lower()
        if name in ("value", "pro"):
            return cls.VALUE
        if name in ("unlimited", "premium"):
            return cls.UNLIMITED
        return cls.STARTER


class InterviewMode(str, Enum):
    FRIENDLY = "friendly"
    MODERATE = "moderate"
    STRICT = "strict"

    @classmethod
    def parse(cls, value: Optional[str]) -> "InterviewMode":
        name = (value or "").strip().lower()
        for mode in cls:
            if mode.value == name:
                return mode
        return cls.MODERATE


class Speaker(str, Enum):
    INTERVIEWER = "interviewer"
    CANDIDATE = "candidate"


# Client payloads use chat-style roles
_CANDIDATE_ALIASES = {"candidate", "user", "human"}


class Turn(BaseModel):
    """One utterance in the interview transcript."""
    model_config = ConfigDict(frozen=True)

    speaker: Speaker
    text: str = ""

    @field_validator("speaker", mode="before")
    @classmethod
    def _normalize_speaker(cls, value):
        if isinstance(value, Speaker):
            return value
        if str(value or "").strip().lower() in _CANDIDATE_ALIASES:
            return Speaker.CANDIDATE
        return Speaker.INTERVIEWER

    @field_validator("text", mode="before")
    @classmethod
    def _coerce_text(cls, value):
        return "" if value is None else str(value)

    @property
    def is_interviewer(self) -> bool:
        return self.speaker == Speaker.INTERVIEWER


class JobSummary(BaseModel):
    """Condensed target-job record."""
    model_config = ConfigDict(frozen=True)

    role: str = ""
    company: str = ""
    location: str = ""
    required_skills: List[str] = Field(default_factory=list)
    description: str = ""

    @field_validator("required_skills")
    @classmethod
    def _cap_skills(cls, value: List[str]) -> List[str]:
        return [s.strip() for s in value if s and s.strip()][:MAX_REQUIRED_SKILLS]

    @field_validator("description")
    @classmethod
    def _clamp_description(cls, value: str) -> str:
        value = (value or "").strip()
        if len(value) > JOB_DESCRIPTION_LIMIT:
            return value[:JOB_DESCRIPTION_LIMIT - 3].rstrip() + "..."
        return value

    @property
    def is_empty(self) -> bool:
        return not (self.role or self.company or self.description or self.required_skills)

    def to_prompt(self) -> str:
        """Render the job as the short block interpolated into prompts."""
        lines = [f"Target job: {self.role or 'Not specified'}"]
        if self.company:
            lines.append(f"Company: {self.company}")
        if self.location:
            lines.append(f"Location: {self.location}")
        lines.append(
            f"Required skills: {', '.join(self.required_skills) if self.required_skills else 'Not specified'}"
        )
        if self.description:
            lines.append(f"Description: {self.description}")
        return "\n".join(lines)


class ResumeSummary(BaseModel):
    """Condensed projection of a resume-analysis record."""
    model_config = ConfigDict(frozen=True)

    primary_role: str = ""
    years_of_experience: Optional[float] = None
    top_skills: List[str] = Field(default_factory=list)
    top_projects: List[str] = Field(default_factory=list)
    most_recent_role: str = ""
    excerpt: str = ""

    @field_validator("top_skills")
    @classmethod
    def _cap_skills(cls, value: List[str]) -> List[str]:
        return [s.strip() for s in value if s and s.strip()][:MAX_RESUME_SKILLS]

    @field_validator("top_projects")
    @classmethod
    def _cap_projects(cls, value: List[str]) -> List[str]:
        return [p.strip() for p in value if p and p.strip()][:MAX_RESUME_PROJECTS]

    @property
    def is_empty(self) -> bool:
        return not self.to_prompt_lines()

    def to_prompt_lines(self) -> List[str]:
        lines = []
        if self.primary_role:
            lines.append(f"Primary role: {self.primary_role}")
        if self.years_of_experience is not None:
            years = self.years_of_experience
            lines.append(f"Years experience: {int(years) if float(years).is_integer() else years}")
        if self.top_skills:
            lines.append(f"Top skills: {', '.join(self.top_skills)}")
        if self.top_projects:
            lines.append(f"Projects: {'; '.join(self.top_projects)}")
        if self.most_recent_role:
            lines.append(f"Recent: {self.most_recent_role}")
        if not lines and self.excerpt:
            lines.append(f"Resume excerpt: {self.excerpt}")
        return lines

    def to_prompt(self) -> str:
        return "\n".join(self.to_prompt_lines())


class InterviewContext(BaseModel):
    """
    Immutable per-request input to question generation.

    Callers must not attach a resume for Starter users; the prompt assembler
    drops it again if one slips through.
    """
    model_config = ConfigDict(frozen=True)

    plan_tier: PlanTier = PlanTier.STARTER
    mode: InterviewMode = InterviewMode.MODERATE
    job: Optional[JobSummary] = None
    resume: Optional[ResumeSummary] = None
    conversation: Tuple[Turn, ...] = ()
    batch_count: int = Field(default=1, ge=1, le=3)
    candidate_answer: str = ""
    current_question: Optional[str] = None

    @property
    def is_starter(self) -> bool:
        return self.plan_tier == PlanTier.STARTER

    @property
    def has_job(self) -> bool:
        return self.job is not None and not self.job.is_empty

    @property
    def prompt_resume(self) -> Optional[ResumeSummary]:
        """Resume summary that may enter a prompt for this tier."""
        if self.is_starter or self.resume is None or self.resume.is_empty:
            return None
        return self.resume

    @property
    def latest_utterance(self) -> str:
        """
        The candidate's most recent words, from the request or the transcript.

        A transcript turn only counts while it is the last turn; once the
        interviewer has replied, that utterance has already been handled.
        """
        if self.candidate_answer.strip():
            return self.candidate_answer.strip()
        if self.conversation and not self.conversation[-1].is_interviewer:
            return self.conversation[-1].text.strip()
        return ""


class GenerationAttempt(BaseModel):
    """Classifier verdicts for one model output inside the retry loop."""
    raw_text: str
    text: str = ""
    format_ok: bool = False
    is_question: bool = False
    is_answer_like: bool = False
    hallucinated: Union[bool, List[str]] = False
    is_repeat: bool = False


class ValidatedQuestion(BaseModel):
    """Final question handed back to the caller."""
    model_config = ConfigDict(frozen=True)

    text: str
    tier_compliant: bool = True
    source: str = "llm"

    @field_validator("text")
    @classmethod
    def _not_empty(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("question text must not be empty")
        return value
