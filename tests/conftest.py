import pytest


SAMPLE_RESUME = """JOHN DOE

PROFESSIONAL SUMMARY
Experienced engineer.

SKILLS
- Go
- Rust"""


@pytest.fixture
def sample_resume() -> str:
    return SAMPLE_RESUME


@pytest.fixture
def analysis_result() -> dict:
    return {
        "audit_findings": [
            {
                "issue": "Markdown headings in summary",
                "why_it_is_a_problem": "ATS parsers read ## as literal text.",
                "ats_real_world_impact": "Section is dropped by older parsers.",
                "correction_applied": "Replaced with an uppercase plain-text header.",
            }
        ],
        "corrected_before_optimization": {
            "scores": {
                "ats_structure": 60,
                "keyword_match": 55,
                "experience_impact": 50,
                "formatting_readability": 40,
                "seniority_alignment": 45,
            },
            "final_ats_score": 51.5,
            "ats_confidence_level": 48,
            "ats_rejection_risk": "High",
        },
        "corrected_optimized_resume": {
            "plain_text": SAMPLE_RESUME,
            "sections": {
                "summary": "Experienced engineer.",
                "experience": "",
                "skills": "- Go\n- Rust",
                "education": "",
            },
        },
        "corrected_after_optimization": {
            "scores": {
                "ats_structure": 85,
                "keyword_match": 80,
                "experience_impact": 75,
                "formatting_readability": 90,
                "seniority_alignment": 70,
            },
            "final_ats_score": 80.25,
            "ats_confidence_level": 72,
            "ats_rejection_risk": "Low",
        },
        "credibility_verdict": {
            "score_change_rationale": "Structure and formatting fixes account for the gain.",
            "trust_level": "Moderate",
            "enterprise_readiness": "Ready for Workday and Greenhouse.",
        },
    }
