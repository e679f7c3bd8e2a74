# backend/services/conversation_context.py
"""
Conversation Context Builder Service

Reads the client-supplied transcript and derives what the prompt assembler and
the regeneration loop need from it. The transcript is never modified here.

It enables the interviewer to:
- Know which stage of the interview it is in (skills -> experience -> behavioral)
- Shift to core-skill probes and short HR checks late in the interview
- See its own recent questions so it does not ask them again
- Find the last real question when the candidate asks for a repeat
"""

from typing import List, NamedTuple, Optional, Sequence

from models import Turn
from prompts.interview_prompts import PromptTemplates

# Interviewer turns after which the core-skills-then-HR directive applies
CORE_FOCUS_TURN_THRESHOLD = 10

# Transcript turns rendered into the user message
HISTORY_WINDOW = 6

RECENT_QUESTION_LIMIT = 3

_QUESTION_STARTERS = ("what", "how", "why", "can you", "tell me", "describe")


class InterviewPhase(NamedTuple):
    name: str
    guidance: str


def phase(turn_count: int) -> InterviewPhase:
    """
    Derive the interview phase from the number of interviewer turns so far.

    Args:
        turn_count: Interviewer turns already in the transcript

    Returns:
        InterviewPhase with name and guidance text
    """
    if turn_count < 2:
        name = "technical-skills"
    elif turn_count < 5:
        name = "experience-projects"
    else:
        name = "behavioral"
    return InterviewPhase(name, PromptTemplates.PHASE_GUIDANCE[name])


def core_focus_directive(interviewer_turns: int) -> Optional[str]:
    """Late-interview focus block, or None before the threshold."""
    if interviewer_turns >= CORE_FOCUS_TURN_THRESHOLD:
        return PromptTemplates.CORE_SKILLS_THEN_HR
    return None


def count_interviewer_turns(conversation: Sequence[Turn]) -> int:
    return sum(1 for turn in conversation if turn.is_interviewer)


def recent_interviewer_questions(
    conversation: Sequence[Turn],
    limit: int = RECENT_QUESTION_LIMIT
) -> List[str]:
    """
    Most recent interviewer turns, newest first.

    Args:
        conversation: Chronological transcript
        limit: Maximum number of turns to return

    Returns:
        Interviewer texts, newest first, empty texts skipped
    """
    recent = []
    for turn in reversed(conversation):
        if turn.is_interviewer and turn.text.strip():
            recent.append(turn.text.strip())
            if len(recent) >= limit:
                break
    return recent


def build_conversation_history(
    conversation: Sequence[Turn],
    last_n: int = HISTORY_WINDOW
) -> str:
    """
    Render the tail of the transcript for the user message.

    Example output:
        "Interviewer: What is your experience with Kafka?
        Candidate: I used it for event sourcing..."
    """
    lines = []
    for turn in list(conversation)[-last_n:]:
        if not turn.text.strip():
            continue
        label = "Interviewer" if turn.is_interviewer else "Candidate"
        lines.append(f"{label}: {turn.text.strip()}")
    return "\n".join(lines)


def looks_like_question(text: str) -> bool:
    s = (text or "").strip()
    if not s:
        return False
    return "?" in s or len(s) > 30 or s.lower().startswith(_QUESTION_STARTERS)


def find_last_question(
    conversation: Sequence[Turn],
    current_question: Optional[str] = None
) -> Optional[str]:
    """
    Locate the interviewer's last real question.

    Short feedback turns ("Good.", "Nice.") are passed over. When no turn looks
    like a question, the client's current question is used, then any interviewer
    turn longer than 10 characters.

    Returns:
        Question text, or None when nothing qualifies
    """
    for turn in reversed(conversation):
        if turn.is_interviewer and looks_like_question(turn.text):
            return turn.text.strip()

    if current_question and current_question.strip():
        return current_question.strip()

    for turn in reversed(conversation):
        if turn.is_interviewer and len(turn.text.strip()) > 10:
            return turn.text.strip()

    return None
