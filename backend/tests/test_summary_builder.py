"""
Test suite for Summary Builder

Run tests with: pytest backend/tests/test_summary_builder.py -v
"""

import pytest
import sys
import os

# Add backend directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from services.summary_builder import build_job_summary, build_resume_summary


# ============================================================================
# FIXTURES - Reusable test setup components
# ============================================================================

@pytest.fixture
def resume_analysis():
    return {
        "primaryRole": "**Data Engineer**",
        "yearsOfExperience": "4",
        "technicalSkills": ["Python", "Airflow", "Spark", "Scala"],
        "projects": [
            {"name": "Zephyr Pipeline", "technologies": ["Spark", "Airflow"]},
            "Billing Export",
            {"name": "", "technologies": ["Go"]},
            {"name": "Ignored Fourth"},
        ],
        "structuredExperience": [
            {"jobTitle": "Data Engineer", "company": "Globex", "duration": "2021-2024"},
        ],
    }


# ============================================================================
# TEST CLASS: Job summary
# ============================================================================

class TestJobSummary:
    """Tests for build_job_summary"""

    def test_explicit_skills(self):
        job = build_job_summary(
            role="Backend Engineer",
            company="<b>Acme</b>",
            description="Build services.",
            skills=["Python", " Python ", "Kafka", ""],
        )
        assert job.company == "Acme"
        assert job.required_skills == ["Python", "Kafka"]

    def test_skills_extracted_from_description(self):
        job = build_job_summary(role="Frontend Developer", description="We use React and TypeScript with Docker.")
        assert job.required_skills == ["TypeScript", "React", "Docker"]

    def test_long_description_is_clamped(self):
        job = build_job_summary(role="Engineer", description="word " * 400)
        assert len(job.description) <= 600
        assert job.description.endswith("...")

    def test_all_empty_returns_none(self):
        assert build_job_summary() is None
        assert build_job_summary(role="  ", skills=[]) is None


# ============================================================================
# TEST CLASS: Resume summary
# ============================================================================

class TestResumeSummary:
    """Tests for build_resume_summary"""

    def test_condensed_fields(self, resume_analysis):
        resume = build_resume_summary(resume_analysis)

        assert resume.primary_role == "Data Engineer"
        assert resume.years_of_experience == 4.0
        assert resume.top_skills == ["Python", "Airflow", "Spark"]
        assert resume.top_projects == ["Zephyr Pipeline (Spark, Airflow)", "Billing Export"]
        assert resume.most_recent_role == "Data Engineer at Globex (2021-2024)"

    def test_prompt_rendering(self, resume_analysis):
        text = build_resume_summary(resume_analysis).to_prompt()
        assert "Years experience: 4" in text
        assert "Recent: Data Engineer at Globex (2021-2024)" in text

    def test_fallback_role_and_bad_years(self):
        resume = build_resume_summary({"fallbackRoles": ["QA Engineer"], "yearsOfExperience": "many"})
        assert resume.primary_role == "QA Engineer"
        assert resume.years_of_experience is None

    def test_raw_text_only_becomes_excerpt(self):
        resume = build_resume_summary(None, "Experienced engineer\n\nworking on payments systems.")
        assert resume.excerpt == "Experienced engineer working on payments systems."
        assert resume.to_prompt() == "Resume excerpt: Experienced engineer working on payments systems."

    def test_nothing_returns_none(self):
        assert build_resume_summary(None, None) is None
        assert build_resume_summary({}, "   ") is None
