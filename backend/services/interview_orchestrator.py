# backend/services/interview_orchestrator.py
"""
Interview Orchestrator Service

Entry point for text-mode question generation. It decides which path a turn
takes before any model call is made, then hands off to the regeneration loop.

Flow:
1. Empty transcript -> templated introduction request (no model call)
2. Candidate asked for a repeat -> last question with an acknowledgement
3. Candidate asked for elaboration -> one rephrasing call, with its own fallback
4. Batch request -> one call, split into up to N questions (no full validation)
5. Otherwise -> full validation & regeneration loop
   (a skip request goes here too, with the change-topic user message)
"""

import logging
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel

from models import (
    InterviewContext,
    InterviewMode,
    JobSummary,
    PlanTier,
    ResumeSummary,
    Turn,
    ValidatedQuestion,
)
from prompts.interview_prompts import PromptTemplates
from services.conversation_context import find_last_question, recent_interviewer_questions
from services.interviewer_personality import InterviewerPersonality, get_interviewer_personality
from services.llm_client import GenerationClient, GenerationError
from services.prompt_assembler import PromptAssembler
from services.regeneration_loop import (
    OPENING_WORD_LIMIT,
    QUESTION_WORD_LIMIT,
    FallbackQuestions,
    OpeningFallbackQuestions,
    RegenerationLoop,
)
from services.text_classifiers import (
    clamp_words,
    enforce_question_only,
    extract_batch_questions,
    is_elaborate_request,
    is_repeat_request,
    is_skip_request,
    sanitize_text,
    word_count,
)

# Configure logging with detailed format
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

MAX_BATCH_COUNT = 3

STARTER_JOB_REQUIRED = (
    "Please select a Target Job to begin the interview. "
    "Starter pack interviews are job-focused only."
)
CONTEXT_REQUIRED = "Please provide a target job or a resume to begin the interview."
JOB_DESCRIPTION_REQUIRED = "A job description is required to generate an opening question."


class InterviewInputError(ValueError):
    """Request inputs cannot produce an interview turn; reported to the caller as-is."""


class InterviewResult(BaseModel):
    """Outcome of one text-mode turn."""
    response: str
    responses: Optional[List[str]] = None
    kind: str = "question"


# ==================== Input handling ====================

def parse_batch_count(value: Any) -> int:
    """
    Parse and clamp a client-supplied batch count into 1..3.

    Raises:
        InterviewInputError: If the value is not an integer
    """
    if value is None or value == "":
        return 1
    if isinstance(value, bool):
        raise InterviewInputError("batchCount must be an integer between 1 and 3.")
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise InterviewInputError("batchCount must be an integer between 1 and 3.")
    if isinstance(value, float) and not value.is_integer():
        raise InterviewInputError("batchCount must be an integer between 1 and 3.")
    return max(1, min(count, MAX_BATCH_COUNT))


def build_interview_context(
    plan_tier: PlanTier,
    mode: InterviewMode,
    job: Optional[JobSummary],
    resume: Optional[ResumeSummary],
    conversation: Sequence[Turn] = (),
    batch_count: Any = 1,
    candidate_answer: str = "",
    current_question: Optional[str] = None
) -> InterviewContext:
    """
    Validate request inputs and build the immutable InterviewContext.

    Starter users never get a resume attached, whatever the client sent.

    Raises:
        InterviewInputError: Missing job for Starter, or neither job nor resume
    """
    has_job = job is not None and not job.is_empty
    has_resume = resume is not None and not resume.is_empty

    if plan_tier == PlanTier.STARTER:
        if not has_job:
            raise InterviewInputError(STARTER_JOB_REQUIRED)
        if has_resume:
            logger.info("Starter plan: ignoring supplied resume summary")
        resume = None
    elif not has_job and not has_resume:
        raise InterviewInputError(CONTEXT_REQUIRED)

    return InterviewContext(
        plan_tier=plan_tier,
        mode=mode,
        job=job if has_job else None,
        resume=resume if has_resume else None,
        conversation=tuple(conversation),
        batch_count=parse_batch_count(batch_count),
        candidate_answer=candidate_answer or "",
        current_question=current_question,
    )


# ==================== Orchestrator ====================

class InterviewOrchestrator:
    """
    Coordinates prompt assembly, generation and validation for one turn.

    Dependencies:
    - GenerationClient: Text backend (OpenAI or Groq)
    - PromptAssembler: Layered prompts per retry phase
    - RegenerationLoop: Check / regenerate / fallback state machine
    - InterviewerPersonality: Templated phrases that need no model call
    """

    REPHRASE_MAX_TOKENS = 150
    REPHRASE_TEMPERATURE = 0.5

    def __init__(
        self,
        client: GenerationClient,
        assembler: Optional[PromptAssembler] = None,
        loop: Optional[RegenerationLoop] = None,
        personality: Optional[InterviewerPersonality] = None,
        model: str = "gpt-4o-mini",
        max_generation_calls: int = 5
    ):
        self.client = client
        self.model = model
        self.assembler = assembler or PromptAssembler(model=model)
        self.loop = loop or RegenerationLoop(client, max_calls=max_generation_calls)
        self.personality = personality or get_interviewer_personality()

    async def next_question(self, context: InterviewContext) -> InterviewResult:
        """
        Produce the interviewer's next turn.

        Args:
            context: Validated interview context

        Returns:
            InterviewResult; `responses` is set only for batch requests

        Raises:
            GenerationError: If the first mandatory model call fails
        """
        if not context.conversation:
            logger.info("Empty conversation - returning introduction request")
            text = self.personality.introduction_request(context.mode, context.job)
            return InterviewResult(response=text, kind="introduction")

        utterance = context.latest_utterance

        if is_repeat_request(utterance):
            logger.info("Clarification request detected: REPEAT")
            return self._clarification(context, await self.clarify(context, elaborate=False))

        if is_elaborate_request(utterance):
            logger.info("Clarification request detected: ELABORATE")
            return self._clarification(context, await self.clarify(context, elaborate=True))

        if is_skip_request(utterance):
            logger.info("Change-topic request detected - generating a fresh question")

        if context.batch_count > 1:
            questions = await self.generate_batch(context)
            return InterviewResult(response=questions[0], responses=questions, kind="batch")

        validated = await self.generate_question(context)
        return InterviewResult(response=validated.text, kind="question")

    async def generate_question(self, context: InterviewContext) -> ValidatedQuestion:
        """Run the full validation & regeneration loop for a single question."""
        def build_prompt(phase, recent=None):
            return self.assembler.assemble(context, phase, recent)

        validated = await self.loop.run(
            build_prompt,
            FallbackQuestions(context.job),
            recent_questions=recent_interviewer_questions(context.conversation),
            max_words=QUESTION_WORD_LIMIT,
            label="interview",
        )
        return validated.model_copy(update={"tier_compliant": self._tier_compliant(context)})

    async def generate_batch(self, context: InterviewContext) -> List[str]:
        """
        One call, split into up to batch_count questions.

        Batch output skips the per-question regeneration loop.
        """
        prompt = self.assembler.assemble(context)
        raw = await self.client.complete(
            prompt.messages,
            model=prompt.model,
            max_tokens=prompt.max_tokens,
            temperature=prompt.temperature,
            label="interview:batch",
        )
        questions = extract_batch_questions(raw, context.batch_count)
        if not questions:
            single = enforce_question_only(clamp_words(raw, 200), QUESTION_WORD_LIMIT)
            if not single:
                single = FallbackQuestions(context.job).primary()
            logger.info("No batch questions extracted - using whole response as one question")
            questions = [single]
        logger.info(f"Batch mode produced {len(questions)} question(s)")
        return questions

    async def clarify(self, context: InterviewContext, elaborate: bool) -> str:
        """
        Repeat or rephrase the last real question without generating a new one.

        Returns:
            Text for the candidate
        """
        last_question = find_last_question(context.conversation, context.current_question)
        if not last_question:
            return self.personality.NO_QUESTION_TO_CLARIFY

        if not elaborate:
            return self.personality.repeat_acknowledgment() + last_question

        try:
            rephrased = await self.client.complete(
                PromptTemplates.rephrase_question(last_question),
                model=self.model,
                max_tokens=self.REPHRASE_MAX_TOKENS,
                temperature=self.REPHRASE_TEMPERATURE,
                label="interview:rephrase",
            )
        except GenerationError as e:
            logger.warning(f"Rephrase call failed, using clarification fallback: {e}")
            return self.personality.clarification_fallback(last_question)

        rephrased = (rephrased or "").strip().strip('"').strip()
        if not rephrased:
            return self.personality.clarification_fallback(last_question)
        return rephrased

    async def opening_question(self, context: InterviewContext) -> ValidatedQuestion:
        """
        Generate a greeting plus opening question for a job-focused interview.

        Raises:
            InterviewInputError: If the job has no description
            GenerationError: If the first mandatory model call fails
        """
        if not context.has_job or not context.job.description:
            raise InterviewInputError(JOB_DESCRIPTION_REQUIRED)

        def build_prompt(phase, recent=None):
            return self.assembler.assemble_opening(context, phase, recent)

        validated = await self.loop.run(
            build_prompt,
            OpeningFallbackQuestions(context.job),
            recent_questions=(),
            max_words=OPENING_WORD_LIMIT,
            label="opening",
        )

        greeting = self.personality.greeting(context.job.role, context.job.company)
        combined = sanitize_text(f"{greeting} {validated.text}")
        text = combined if combined.endswith("?") and word_count(combined) <= OPENING_WORD_LIMIT else validated.text

        return ValidatedQuestion(
            text=text,
            tier_compliant=self._tier_compliant(context),
            source=validated.source,
        )

    @staticmethod
    def _clarification(context: InterviewContext, text: str) -> InterviewResult:
        # Batch clients read `responses`, so the single reply is wrapped
        responses = [text] if context.batch_count > 1 else None
        return InterviewResult(response=text, responses=responses, kind="clarification")

    @staticmethod
    def _tier_compliant(context: InterviewContext) -> bool:
        return not (context.is_starter and context.prompt_resume is not None)


# ==================== Convenience Function ====================

async def get_next_interview_turn(
    client: GenerationClient,
    context: InterviewContext
) -> InterviewResult:
    """Create an orchestrator for `client` and produce the next turn."""
    return await InterviewOrchestrator(client).next_question(context)
