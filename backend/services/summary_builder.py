# backend/services/summary_builder.py
"""
Summary Builder

Reduces externally owned job and resume records to the short summaries that
are allowed into prompts. Keeping them small controls token cost and gives the
model less material to embellish.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from models import JobSummary, ResumeSummary
from services.text_classifiers import (
    extract_required_skills,
    sanitize_text,
    strip_markup,
)

logger = logging.getLogger(__name__)

RESUME_EXCERPT_CHARS = 400


def _clean_list(values: Optional[Iterable[Any]]) -> List[str]:
    cleaned = []
    for value in values or []:
        item = strip_markup(str(value)) if value is not None else ""
        if item and item not in cleaned:
            cleaned.append(item)
    return cleaned


def build_job_summary(
    role: Optional[str] = None,
    company: Optional[str] = None,
    location: Optional[str] = None,
    description: Optional[str] = None,
    skills: Optional[Iterable[str]] = None
) -> Optional[JobSummary]:
    """
    Build a JobSummary from ad-hoc job fields.

    Required skills come from the explicit list when given, otherwise they are
    extracted from the description.

    Returns:
        JobSummary, or None when every field is empty
    """
    clean_description = sanitize_text(description)
    required = _clean_list(skills) or extract_required_skills(description or "")

    summary = JobSummary(
        role=strip_markup(role),
        company=strip_markup(company),
        location=strip_markup(location),
        required_skills=required,
        description=clean_description,
    )
    if summary.is_empty:
        return None
    return summary


def build_resume_summary(
    analysis: Optional[Dict[str, Any]] = None,
    raw_text: Optional[str] = None
) -> Optional[ResumeSummary]:
    """
    Condense a resume-analysis record.

    Args:
        analysis: Structured record with keys such as primaryRole, fallbackRoles,
            yearsOfExperience, technicalSkills (or skills), projects and
            structuredExperience
        raw_text: Extracted resume text, used only when the record yields nothing

    Returns:
        ResumeSummary, or None when there is nothing to summarize
    """
    analysis = analysis or {}

    primary_role = analysis.get("primaryRole") or ""
    if not primary_role and analysis.get("fallbackRoles"):
        primary_role = analysis["fallbackRoles"][0]

    years = analysis.get("yearsOfExperience")
    try:
        years = float(years) if years not in (None, "") else None
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric yearsOfExperience: {years!r}")
        years = None

    skills = _clean_list(analysis.get("technicalSkills") or analysis.get("skills"))

    projects = []
    for project in (analysis.get("projects") or [])[:3]:
        if isinstance(project, dict):
            name = strip_markup(project.get("name"))
            tech = _clean_list(project.get("technologies"))
            if name:
                projects.append(f"{name} ({', '.join(tech)})" if tech else name)
        elif project:
            projects.append(strip_markup(str(project)))

    recent = ""
    experience = analysis.get("structuredExperience") or []
    if experience and isinstance(experience[0], dict):
        latest = experience[0]
        title = strip_markup(latest.get("jobTitle"))
        company = strip_markup(latest.get("company"))
        recent = " at ".join(part for part in (title, company) if part)
        if recent and latest.get("duration"):
            recent += f" ({strip_markup(latest['duration'])})"

    excerpt = ""
    if raw_text:
        flat = " ".join(raw_text.split())
        excerpt = flat[:RESUME_EXCERPT_CHARS] + ("..." if len(flat) > RESUME_EXCERPT_CHARS else "")
        excerpt = sanitize_text(excerpt)

    summary = ResumeSummary(
        primary_role=strip_markup(primary_role),
        years_of_experience=years,
        top_skills=skills,
        top_projects=projects,
        most_recent_role=recent.strip(),
        excerpt=excerpt,
    )
    if summary.is_empty:
        return None
    return summary
