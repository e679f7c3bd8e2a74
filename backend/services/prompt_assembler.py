# backend/services/prompt_assembler.py
"""
Prompt Assembler

Builds the exact messages for one question-generation call from an
InterviewContext and the retry phase in progress.

Key Responsibilities:
- Layer persona, rule blocks, tier restrictions, phase guidance and job priority
- Keep Starter prompts free of any resume-derived text
- Attach short job and resume summaries as separate system messages
- Build the user turn (latest answer, change-topic instruction, batch instruction)
- Tighten the prompt on retries with one additional directive and a shifted temperature
- Report the allowed context used for hallucination checks
"""

import logging
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models import InterviewContext, InterviewMode
from prompts.interview_prompts import PromptTemplates
from services.conversation_context import (
    build_conversation_history,
    core_focus_directive,
    count_interviewer_turns,
    phase,
)
from services.text_classifiers import is_skip_request

logger = logging.getLogger(__name__)


class RetryPhase(str, Enum):
    INITIAL = "initial"
    FORMAT = "format"
    HALLUCINATION = "hallucination"
    SHAPE = "shape"
    REPEAT = "repeat"


class AssembledPrompt(BaseModel):
    """Messages plus sampling options for one Generation Client call."""
    messages: List[Dict[str, str]]
    temperature: float
    max_tokens: int
    model: str
    allowed_context: str = ""
    retry_phase: RetryPhase = RetryPhase.INITIAL
    is_change_topic: bool = False

    def full_text(self) -> str:
        return "\n".join(m["content"] for m in self.messages)


class PromptAssembler:
    """
    Builds layered prompts for question generation.

    Each concern is a separate block from PromptTemplates, so tier rules,
    mode rigor and retry tightening can be toggled independently.
    """

    DEFAULT_MAX_TOKENS = 80
    REPEAT_MAX_TOKENS = 90
    BATCH_MAX_TOKENS = 220

    def __init__(self, model: str = "gpt-4o-mini"):
        self.model = model

    # ==================== Temperatures ====================

    @staticmethod
    def retry_temperature(base: float, retry_phase: RetryPhase) -> float:
        """Shift the persona temperature for a retry."""
        if retry_phase == RetryPhase.FORMAT:
            return max(0.1, base - 0.2)
        if retry_phase in (RetryPhase.HALLUCINATION, RetryPhase.SHAPE):
            return max(0.05, base - 0.3)
        if retry_phase == RetryPhase.REPEAT:
            return min(0.7, base + 0.3)
        return base

    # ==================== Building blocks ====================

    def _tier_blocks(self, context: InterviewContext) -> str:
        if not context.is_starter:
            return ""
        blocks = PromptTemplates.STARTER_NEGATIVE_RULES + PromptTemplates.STARTER_PACK_SAFETY_RULE
        if context.mode == InterviewMode.STRICT:
            blocks += PromptTemplates.STARTER_PACK_STRICT_RULE
        return blocks

    def _job_blocks(self, context: InterviewContext) -> str:
        if not context.has_job:
            return ""
        block = PromptTemplates.PRIORITIZE_TARGET_JOB
        if context.job.required_skills:
            block += (
                "\nFOCUS: Prefer questions about these required skills: "
                + ", ".join(context.job.required_skills) + "."
            )
        return block

    def _summary_messages(self, context: InterviewContext) -> List[Dict[str, str]]:
        messages = []
        if context.has_job:
            messages.append({"role": "system", "content": "JOB SUMMARY:\n" + context.job.to_prompt()})
        resume = context.prompt_resume
        if resume is not None:
            messages.append({"role": "system", "content": "RESUME SUMMARY:\n" + resume.to_prompt()})
        return messages

    def _experience_line(self, context: InterviewContext) -> str:
        resume = context.prompt_resume
        return PromptTemplates.experience_line(resume.years_of_experience if resume else None)

    def allowed_context(self, context: InterviewContext, include_history: bool = True) -> str:
        """
        Concatenate every piece of job, resume and conversation text a prompt carries.

        Args:
            context: Interview context
            include_history: Whether the transcript was part of the prompt

        Returns:
            Ground-truth text for hallucination checks
        """
        parts = []
        if context.has_job:
            parts.append(context.job.to_prompt())
        resume = context.prompt_resume
        if resume is not None:
            parts.append(resume.to_prompt())
        if include_history:
            parts.append(build_conversation_history(context.conversation))
            parts.append(context.latest_utterance)
        return "\n".join(p for p in parts if p)

    def build_system_prompt(
        self,
        context: InterviewContext,
        retry_phase: RetryPhase = RetryPhase.INITIAL,
        recent_questions: Optional[List[str]] = None
    ) -> str:
        """
        Layer the system prompt for an interview turn.

        Order: persona, question rules, role & experience lock, Starter blocks,
        anti-hallucination, phase guidance (or the late-interview override),
        job priority, output rule, retry directive.
        """
        interviewer_turns = count_interviewer_turns(context.conversation)
        current_phase = phase(interviewer_turns)
        focus = core_focus_directive(interviewer_turns)

        prompt = PromptTemplates.persona(context.mode.value)
        prompt += "\n" + PromptTemplates.QUESTION_RULES
        prompt += PromptTemplates.ROLE_EXPERIENCE_LOCK
        prompt += "\n" + self._experience_line(context)
        prompt += self._tier_blocks(context)
        prompt += PromptTemplates.ANTI_HALLUCINATION_RULE
        prompt += "\n\n" + current_phase.guidance
        if focus:
            prompt += focus
        prompt += self._job_blocks(context)

        if context.batch_count > 1:
            prompt += "\n\nOUTPUT: " + PromptTemplates.batch_instruction(context.batch_count)
        else:
            prompt += PromptTemplates.HARD_QUESTION_ONLY

        if retry_phase != RetryPhase.INITIAL:
            prompt += "\n\n" + PromptTemplates.retry_directive(retry_phase.value, recent_questions)

        return prompt

    def build_user_message(self, context: InterviewContext) -> str:
        answer = context.latest_utterance
        if is_skip_request(answer):
            content = PromptTemplates.CHANGE_TOPIC_INSTRUCTION
        else:
            history = build_conversation_history(context.conversation)
            if history and answer:
                content = f"{history}\n\nThe candidate's latest response was: \"{answer}\""
            elif answer:
                content = (
                    f"The candidate answered: \"{answer}\". Ask a follow-up question based on the "
                    "job requirements ONLY. Keep it under 60 words, one sentence."
                )
            elif history:
                content = f"{history}\n\nAsk the next interview question."
            else:
                content = "Ask the next interview question based on the job requirements."

        if context.batch_count > 1:
            content += "\n\n" + PromptTemplates.batch_instruction(context.batch_count)
        return content

    # ==================== Public API ====================

    def assemble(
        self,
        context: InterviewContext,
        retry_phase: RetryPhase = RetryPhase.INITIAL,
        recent_questions: Optional[List[str]] = None
    ) -> AssembledPrompt:
        """
        Assemble messages for an interview turn.

        Args:
            context: Interview context
            retry_phase: Which retry is being attempted
            recent_questions: Prior interviewer questions for the repeat directive

        Returns:
            AssembledPrompt ready for the Generation Client
        """
        change_topic = is_skip_request(context.latest_utterance)
        messages = [{"role": "system", "content": self.build_system_prompt(context, retry_phase, recent_questions)}]
        messages += self._summary_messages(context)
        messages.append({"role": "user", "content": self.build_user_message(context)})

        if context.batch_count > 1:
            max_tokens = self.BATCH_MAX_TOKENS
        elif retry_phase == RetryPhase.REPEAT:
            max_tokens = self.REPEAT_MAX_TOKENS
        else:
            max_tokens = self.DEFAULT_MAX_TOKENS

        return AssembledPrompt(
            messages=messages,
            temperature=self.retry_temperature(PromptTemplates.temperature(context.mode.value), retry_phase),
            max_tokens=max_tokens,
            model=self.model,
            allowed_context=self.allowed_context(context, include_history=not change_topic),
            retry_phase=retry_phase,
            is_change_topic=change_topic,
        )

    def assemble_opening(
        self,
        context: InterviewContext,
        retry_phase: RetryPhase = RetryPhase.INITIAL,
        recent_questions: Optional[List[str]] = None
    ) -> AssembledPrompt:
        """Assemble messages for the opening question of a job-focused interview."""
        system = PromptTemplates.persona(context.mode.value)
        system += PromptTemplates.ROLE_EXPERIENCE_LOCK
        system += "\n" + self._experience_line(context)
        system += self._tier_blocks(context)
        system += PromptTemplates.ANTI_HALLUCINATION_RULE
        system += PromptTemplates.HARD_QUESTION_ONLY
        if retry_phase != RetryPhase.INITIAL:
            system += "\n\n" + PromptTemplates.retry_directive(retry_phase.value, recent_questions)

        job_text = context.job.to_prompt() if context.has_job else ""
        messages = [{"role": "system", "content": system}]
        messages += self._summary_messages(context)
        messages.append({
            "role": "user",
            "content": PromptTemplates.opening_question(context.mode.value, job_text),
        })

        return AssembledPrompt(
            messages=messages,
            temperature=self.retry_temperature(PromptTemplates.temperature(context.mode.value), retry_phase),
            max_tokens=self.DEFAULT_MAX_TOKENS,
            model=self.model,
            allowed_context=self.allowed_context(context, include_history=False),
            retry_phase=retry_phase,
        )
