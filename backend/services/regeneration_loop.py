# backend/services/regeneration_loop.py
"""
Validation & Regeneration Loop

Turns one or more model outputs into a single compliant interview question.

Stages, in order:
    Generate -> CheckFormat -> CheckHallucination -> CheckValidQuestion
    -> CheckRepeat -> Accept

Each check may regenerate once with a tightened prompt. If the retry also
fails, the stage substitutes a deterministic fallback question (the format stage
instead keeps a best-effort trimmed version, since later stages can still repair
it, unless that version still echoes a skip request).
The total number of Generation Client calls per request is capped.

Failure semantics:
- A provider error on the first, mandatory call propagates as GenerationError
- A provider error inside a retry is logged and treated as a failed retry
- Content failures are never surfaced; they end in a fallback question
"""

import logging
from typing import Callable, List, Optional, Sequence

from models import GenerationAttempt, JobSummary, ValidatedQuestion
from services.llm_client import GenerationClient, GenerationError
from services.prompt_assembler import AssembledPrompt, RetryPhase
from services.text_classifiers import (
    check_format,
    detect_hallucinated_entities,
    enforce_question_only,
    is_answer_like,
    is_repeat,
    is_valid_question,
    mentions_skip,
    normalize_for_compare,
    overlap_similarity,
    sanitize_text,
    trim_to_question,
)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

QUESTION_WORD_LIMIT = 60
OPENING_WORD_LIMIT = 40

# Called as builder(phase) or builder(phase, recent_questions)
PromptBuilder = Callable[..., AssembledPrompt]


class FallbackQuestions:
    """
    Deterministic questions used when generation cannot produce a compliant one.

    Every text here is a valid interview question that only names the job
    title and required skills, so it cannot introduce unknown entities.
    """

    JOB_VARIANTS = [
        "How would you approach the key challenges mentioned in this role's requirements?",
        "Can you explain your experience with any of the required technologies for this position?",
        "How do you stay updated with industry trends relevant to this role?",
        "Can you describe a time when you solved a problem related to the responsibilities of this role?",
    ]

    GENERAL_VARIANTS = [
        "Can you tell me about another relevant project or experience from your background?",
        "What is a recent technical challenge you worked through, and how did you resolve it?",
        "How do you usually approach learning a new tool or technology?",
    ]

    def __init__(self, job: Optional[JobSummary] = None):
        self.job = job

    @property
    def title(self) -> str:
        return self.job.role if self.job else ""

    @property
    def skills(self) -> List[str]:
        return list(self.job.required_skills) if self.job else []

    def skills_question(self) -> Optional[str]:
        if not self.skills:
            return None
        return f"Which of these required skills have you used most: {', '.join(self.skills)}?"

    def primary(self) -> str:
        """Skills-based question, else a job-title question, else a generic one."""
        skills_q = self.skills_question()
        if skills_q:
            return skills_q
        if self.title:
            return (
                f"Which requirement from the {self.title} job description do you have "
                "the most hands-on experience with?"
            )
        return "Which requirement from the job description do you have the most hands-on experience with?"

    def variants(self) -> List[str]:
        candidates = []
        skills_q = self.skills_question()
        if skills_q:
            candidates.append(skills_q)
        if self.job is not None:
            candidates.extend(self.JOB_VARIANTS)
        candidates.extend(self.GENERAL_VARIANTS)
        return candidates

    def non_repeating(self, recent: Sequence[str]) -> str:
        """
        First variant that is not a near-duplicate of any recent question.

        When every variant collides, the least similar one is returned.
        """
        candidates = self.variants()
        for candidate in candidates:
            if not is_repeat(candidate, recent):
                return candidate

        def worst_overlap(candidate: str) -> float:
            norm = normalize_for_compare(candidate)
            return max(overlap_similarity(norm, normalize_for_compare(q)) for q in recent)

        return min(candidates, key=worst_overlap)

    def final(self) -> str:
        """Used when sanitization leaves nothing usable."""
        if self.title:
            return (
                "Can you tell me about a project or task where you used the key "
                f"technologies for the {self.title} role?"
            )
        return "Can you tell me about a project or task where you used the key technologies for this role?"


class OpeningFallbackQuestions(FallbackQuestions):
    """Fallbacks for the first question of a job-focused interview."""

    def primary(self) -> str:
        company = self.job.company if self.job else ""
        if self.title:
            where = f" at {company}" if company else ""
            return f"What's your experience with the main technologies required for the {self.title} role{where}?"
        return "What technical experience do you have that's relevant to this job?"

    def final(self) -> str:
        return self.primary()


class _CallBudget:
    """Counts Generation Client calls for one request."""

    def __init__(self, limit: int):
        self.limit = limit
        self.used = 0

    @property
    def exhausted(self) -> bool:
        return self.used >= self.limit

    def spend(self) -> None:
        self.used += 1


class RegenerationLoop:
    """
    Runs the check/regenerate/fallback state machine for a single question.

    The loop itself holds no per-request state, so one instance can be shared.

    Attributes:
        client: Generation Client used for every call
        max_calls: Hard cap on calls per request, first call included
    """

    def __init__(self, client: GenerationClient, max_calls: int = 5):
        self.client = client
        self.max_calls = max(1, max_calls)

    # ==================== Verdicts ====================

    @staticmethod
    def format_ok(raw_text: str, change_topic: bool = False) -> bool:
        if not check_format(raw_text)["passed"]:
            return False
        if change_topic and mentions_skip(raw_text):
            return False
        return True

    def evaluate(
        self,
        raw_text: str,
        allowed_context: str,
        recent_questions: Sequence[str] = (),
        max_words: int = QUESTION_WORD_LIMIT,
        change_topic: bool = False
    ) -> GenerationAttempt:
        """
        Run every classifier on one model output.

        Returns:
            GenerationAttempt with the trimmed text and all verdicts
        """
        text = trim_to_question(raw_text, max_words)
        return GenerationAttempt(
            raw_text=raw_text or "",
            text=text,
            format_ok=self.format_ok(raw_text or "", change_topic),
            is_question=is_valid_question(text),
            is_answer_like=is_answer_like(raw_text),
            hallucinated=detect_hallucinated_entities(text, allowed_context),
            is_repeat=is_repeat(text, recent_questions),
        )

    # ==================== Calls ====================

    async def _call(self, prompt: AssembledPrompt, budget: _CallBudget, label: str) -> str:
        budget.spend()
        return await self.client.complete(
            prompt.messages,
            model=prompt.model,
            max_tokens=prompt.max_tokens,
            temperature=prompt.temperature,
            label=f"{label}:{prompt.retry_phase.value}",
        )

    async def _retry(
        self,
        build_prompt: PromptBuilder,
        retry_phase: RetryPhase,
        budget: _CallBudget,
        recent_questions: Sequence[str],
        label: str
    ) -> Optional[str]:
        """One regeneration; None when the budget is spent or the provider fails."""
        if budget.exhausted:
            logger.warning(f"Generation budget of {budget.limit} calls spent; skipping {retry_phase.value} retry")
            return None
        if retry_phase == RetryPhase.REPEAT:
            prompt = build_prompt(retry_phase, list(recent_questions))
        else:
            prompt = build_prompt(retry_phase)
        try:
            return await self._call(prompt, budget, label)
        except GenerationError as e:
            logger.warning(f"{retry_phase.value} retry failed, using fallback path: {e}")
            return None

    # ==================== State machine ====================

    async def run(
        self,
        build_prompt: PromptBuilder,
        fallbacks: FallbackQuestions,
        recent_questions: Sequence[str] = (),
        max_words: int = QUESTION_WORD_LIMIT,
        label: str = "question"
    ) -> ValidatedQuestion:
        """
        Produce one validated question.

        Args:
            build_prompt: Called as build_prompt(phase) or build_prompt(phase, recent)
            fallbacks: Deterministic questions for this request
            recent_questions: Last interviewer questions, newest first
            max_words: Word cap for the accepted question
            label: Tag used in payload logs

        Returns:
            ValidatedQuestion

        Raises:
            GenerationError: If the first, mandatory call fails
        """
        budget = _CallBudget(self.max_calls)
        recent = [q for q in recent_questions if q][:3]

        prompt = build_prompt(RetryPhase.INITIAL)
        allowed = prompt.allowed_context
        change_topic = prompt.is_change_topic

        raw = await self._call(prompt, budget, label)
        attempt = self.evaluate(raw, allowed, recent, max_words, change_topic)
        text = attempt.text
        source = "llm"

        # CheckFormat
        if not attempt.format_ok:
            logger.info(f"Format check failed (answer_like={attempt.is_answer_like}) - regenerating")
            retry_raw = await self._retry(build_prompt, RetryPhase.FORMAT, budget, recent, label)
            if retry_raw is not None and self.format_ok(retry_raw, change_topic):
                text = trim_to_question(retry_raw, max_words)
                logger.info("Format regeneration succeeded")
            elif change_topic and mentions_skip(text):
                logger.info("Format regeneration still echoes the skip, using fallback")
                text, source = fallbacks.primary(), "fallback"
            else:
                logger.info(f"Format regeneration failed, keeping trimmed text: {text!r}")

        # CheckHallucination
        hallucinated = detect_hallucinated_entities(text, allowed)
        if hallucinated:
            logger.info(f"Hallucinated entities detected: {hallucinated}")
            retry_raw = await self._retry(build_prompt, RetryPhase.HALLUCINATION, budget, recent, label)
            retry_text = trim_to_question(retry_raw, max_words) if retry_raw else ""
            if retry_text and not detect_hallucinated_entities(retry_text, allowed):
                text = retry_text
            else:
                logger.info("Anti-hallucination regeneration failed, using fallback")
                text, source = fallbacks.primary(), "fallback"

        # CheckValidQuestion
        if not is_valid_question(text):
            logger.info(f"Not a valid interrogative question: {text!r} - regenerating")
            retry_raw = await self._retry(build_prompt, RetryPhase.SHAPE, budget, recent, label)
            retry_text = trim_to_question(retry_raw, max_words) if retry_raw else ""
            if is_valid_question(retry_text) and not detect_hallucinated_entities(retry_text, allowed):
                text, source = retry_text, "llm"
            else:
                logger.info("Shape regeneration failed, using fallback")
                text, source = fallbacks.primary(), "fallback"

        # CheckRepeat
        if recent and is_repeat(text, recent):
            logger.info(f"Repeat of a recent question detected: {text!r}")
            retry_raw = await self._retry(build_prompt, RetryPhase.REPEAT, budget, recent, label)
            retry_text = trim_to_question(retry_raw, max_words) if retry_raw else ""
            if (
                is_valid_question(retry_text)
                and not is_repeat(retry_text, recent)
                and not detect_hallucinated_entities(retry_text, allowed)
            ):
                text, source = retry_text, "llm"
            else:
                logger.info("No-repeat regeneration failed, using unique fallback")
                text, source = fallbacks.non_repeating(recent), "fallback"

        logger.info(f"Question pipeline used {budget.used} generation call(s)")
        return self.accept(text, source, fallbacks, allowed, recent, max_words, change_topic)

    def accept(
        self,
        text: str,
        source: str,
        fallbacks: FallbackQuestions,
        allowed_context: str,
        recent_questions: Sequence[str],
        max_words: int = QUESTION_WORD_LIMIT,
        change_topic: bool = False
    ) -> ValidatedQuestion:
        """Sanitize the chosen text, substituting a fallback if anything breaks."""
        cleaned = sanitize_text(text)
        if cleaned:
            cleaned = enforce_question_only(cleaned, max_words)

        if (
            not cleaned
            or not is_valid_question(cleaned)
            or detect_hallucinated_entities(cleaned, allowed_context)
        ):
            logger.warning(f"Question unusable after sanitization ({text!r}); using final fallback")
            cleaned = enforce_question_only(sanitize_text(fallbacks.final()), max_words)
            source = "fallback"

        # After a skip the question must not mention skipping or moving on
        if change_topic and mentions_skip(cleaned):
            logger.info(f"Question echoes the skip request ({cleaned!r}); using fallback")
            cleaned = enforce_question_only(sanitize_text(fallbacks.primary()), max_words)
            source = "fallback"

        if recent_questions and is_repeat(cleaned, recent_questions):
            cleaned = enforce_question_only(sanitize_text(fallbacks.non_repeating(recent_questions)), max_words)
            source = "fallback"

        return ValidatedQuestion(text=cleaned, source=source)

    def repair(
        self,
        text: str,
        fallbacks: FallbackQuestions,
        allowed_context: str,
        recent_questions: Sequence[str] = (),
        max_words: int = QUESTION_WORD_LIMIT
    ) -> ValidatedQuestion:
        """
        Apply the checks without any model call.

        Used for streamed voice output, where a regeneration would add a full
        round trip of latency.
        """
        recent = [q for q in recent_questions if q][:3]
        candidate = trim_to_question(text, max_words)
        source = "llm"
        if not is_valid_question(candidate) or detect_hallucinated_entities(candidate, allowed_context):
            logger.info(f"Streamed question failed validation: {candidate!r}; using fallback")
            candidate, source = fallbacks.primary(), "fallback"
        if recent and is_repeat(candidate, recent):
            candidate, source = fallbacks.non_repeating(recent), "fallback"
        return self.accept(candidate, source, fallbacks, allowed_context, recent, max_words)
