# backend/prompts/__init__.py
"""
Interview Prompts Package

Contains the persona catalog and rule blocks for question generation.
"""

from .interview_prompts import (
    PromptTemplates,
    PersonaPrompt,
    OpeningPrompt,
    RephrasePrompt,
    VoicePrompt,
    FeedbackPrompt
)

__all__ = [
    "PromptTemplates",
    "PersonaPrompt",
    "OpeningPrompt",
    "RephrasePrompt",
    "VoicePrompt",
    "FeedbackPrompt"
]
