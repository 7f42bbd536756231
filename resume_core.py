#!/usr/bin/env python3
"""Core deterministic logic for the ATS resume auditor."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any
import re


MAX_HEADING_LENGTH = 60
BULLET_MARKER = "-"

HEADING_REGISTRY = frozenset(
    {
        "PROFESSIONAL SUMMARY",
        "SUMMARY",
        "EXPERIENCE",
        "WORK EXPERIENCE",
        "PROJECTS",
        "SKILLS",
        "TECHNICAL SKILLS",
        "EDUCATION",
        "CERTIFICATIONS",
        "LANGUAGES",
        "ADDITIONAL INFORMATION",
    }
)

SCORE_WEIGHTS = {
    "ats_structure": 0.25,
    "keyword_match": 0.25,
    "experience_impact": 0.20,
    "formatting_readability": 0.15,
    "seniority_alignment": 0.15,
}

FINDING_KEYS = ("issue", "why_it_is_a_problem", "ats_real_world_impact", "correction_applied")
AUDIT_KEYS = ("scores", "final_ats_score", "ats_confidence_level", "ats_rejection_risk")
SECTION_KEYS = ("summary", "experience", "skills", "education")
VERDICT_KEYS = ("score_change_rationale", "trust_level", "enterprise_readiness")


class BlockKind(Enum):
    HEADING = "heading"
    BODY = "body"
    BLANK = "blank"


@dataclass(frozen=True)
class Block:
    kind: BlockKind
    text: str


Document = tuple[Block, ...]


def classify_line(line: str) -> BlockKind:
    """Classify a single resume line as heading, body or blank.

    Known section names always count as headings. Any other line that has no
    lowercase letters, does not start with a bullet and is at most 60
    characters long is treated as a heading too, so short all-caps body lines
    (an acronym on its own, say) come out as headings.
    """
    stripped = line.strip()
    if not stripped:
        return BlockKind.BLANK

    upper = stripped.upper()
    if upper in HEADING_REGISTRY:
        return BlockKind.HEADING

    if (
        upper == stripped
        and not stripped.startswith(BULLET_MARKER)
        and len(stripped) <= MAX_HEADING_LENGTH
    ):
        return BlockKind.HEADING

    return BlockKind.BODY


def build_document(resume_text: str) -> Document:
    """Split resume text into one classified block per line, in order."""
    blocks: list[Block] = []
    for line in resume_text.split("\n"):
        kind = classify_line(line)
        if kind is BlockKind.HEADING:
            blocks.append(Block(kind, line.strip().upper()))
        else:
            blocks.append(Block(kind, line))
    return tuple(blocks)


def heading_indices(doc: Sequence[Block]) -> list[int]:
    """Return the positions of heading blocks in *doc*."""
    return [i for i, block in enumerate(doc) if block.kind is BlockKind.HEADING]


def check_for_markdown(text: str) -> list[str]:
    """Check for markdown-like patterns in text. Returns list of warnings."""
    warnings: list[str] = []
    lines = text.split("\n")

    for i, line in enumerate(lines, 1):
        stripped = line.strip()
        if re.match(r"^#{1,6}\s", stripped):
            warnings.append(f"Line {i}: Markdown heading detected (starts with #)")
        if stripped.startswith("```"):
            warnings.append(f"Line {i}: Code block marker detected (```)")
        if re.search(r"\*\*[^*]+\*\*", stripped) or re.search(r"__[^_]+__", stripped):
            warnings.append(f"Line {i}: Bold markdown detected (**text** or __text__)")

    return warnings


def build_audit_prompt(resume_text: str, job_description: str | None = None) -> str:
    """Build the auditor prompt for a resume and an optional job description."""
    jd_section = ""
    if job_description and job_description.strip():
        jd_section = f"""
        TARGET JOB DESCRIPTION (score keyword match and seniority against it):
        \"\"\"
        {job_description.strip()}
        \"\"\"
"""

    return f"""You are an ATS Quality Control Auditor and Resume Scoring Validator.
        Your task is to process the resume below exactly as a modern ATS platform would, enforcing realism and credibility.

        MANDATORY AUDIT OBJECTIVES:
        1. Evaluate the original resume with strict penalties for markdown, generic content, and poor formatting.
        2. Calculate scores using the weighted formula: (Structure*0.25 + Keywords*0.25 + Impact*0.20 + Formatting*0.15 + Seniority*0.15).
        3. Optimize the resume to be ATS-safe plain text (NO markdown, NO icons, NO symbols).
        4. Optimization constraint: 500-700 words, structured for 2 pages.
        5. Calculate a conservative ATS_CONFIDENCE_LEVEL (0-100).

        STRICT RULES:
        - Markdown formatting (**, ##) inside resume text REDUCES formatting scores.
        - Score improvements > 15 points require massive structural changes.
        - Plain text only for the optimized resume.
        - Use UPPERCASE for section headers and "- " for bullet points.
{jd_section}
        RESUME TO PROCESS:
        \"\"\"
        {resume_text}
        \"\"\""""


def weighted_ats_score(scores: Mapping[str, float]) -> float:
    """Combine the five category scores using the published weights."""
    return round(sum(float(scores[key]) * weight for key, weight in SCORE_WEIGHTS.items()), 2)


def _require_mapping(value: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"{path} must be an object.")
    return value


def _require_keys(value: Mapping[str, Any], keys: Sequence[str], path: str) -> None:
    missing = [key for key in keys if key not in value]
    if missing:
        raise ValueError(f"{path} is missing required field(s): {', '.join(missing)}")


def _require_number(value: Any, path: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{path} must be a number (got {value!r}).")


def _require_string(value: Any, path: str) -> None:
    if not isinstance(value, str):
        raise ValueError(f"{path} must be a string (got {type(value).__name__}).")


def _validate_audit_data(value: Any, path: str) -> None:
    audit = _require_mapping(value, path)
    _require_keys(audit, AUDIT_KEYS, path)

    scores = _require_mapping(audit["scores"], f"{path}.scores")
    _require_keys(scores, tuple(SCORE_WEIGHTS), f"{path}.scores")
    for key in SCORE_WEIGHTS:
        _require_number(scores[key], f"{path}.scores.{key}")

    _require_number(audit["final_ats_score"], f"{path}.final_ats_score")
    _require_number(audit["ats_confidence_level"], f"{path}.ats_confidence_level")
    _require_string(audit["ats_rejection_risk"], f"{path}.ats_rejection_risk")


def validate_analysis_result(data: Any) -> dict[str, Any]:
    """Check a decoded analysis result against the audit schema.

    Returns the same mapping as a dict. Raises ValueError naming the first
    offending field.
    """
    result = _require_mapping(data, "result")
    _require_keys(
        result,
        (
            "audit_findings",
            "corrected_before_optimization",
            "corrected_optimized_resume",
            "corrected_after_optimization",
            "credibility_verdict",
        ),
        "result",
    )

    findings = result["audit_findings"]
    if not isinstance(findings, list):
        raise ValueError("result.audit_findings must be a list.")
    for i, finding in enumerate(findings):
        path = f"result.audit_findings[{i}]"
        finding = _require_mapping(finding, path)
        _require_keys(finding, FINDING_KEYS, path)
        for key in FINDING_KEYS:
            _require_string(finding[key], f"{path}.{key}")

    _validate_audit_data(result["corrected_before_optimization"], "result.corrected_before_optimization")
    _validate_audit_data(result["corrected_after_optimization"], "result.corrected_after_optimization")

    optimized = _require_mapping(result["corrected_optimized_resume"], "result.corrected_optimized_resume")
    _require_keys(optimized, ("plain_text", "sections"), "result.corrected_optimized_resume")
    _require_string(optimized["plain_text"], "result.corrected_optimized_resume.plain_text")
    sections = _require_mapping(optimized["sections"], "result.corrected_optimized_resume.sections")
    _require_keys(sections, SECTION_KEYS, "result.corrected_optimized_resume.sections")
    for key in SECTION_KEYS:
        _require_string(sections[key], f"result.corrected_optimized_resume.sections.{key}")

    verdict = _require_mapping(result["credibility_verdict"], "result.credibility_verdict")
    _require_keys(verdict, VERDICT_KEYS, "result.credibility_verdict")
    for key in VERDICT_KEYS:
        _require_string(verdict[key], f"result.credibility_verdict.{key}")

    return dict(result)


def score_mismatch_warnings(result: Mapping[str, Any], tolerance: float = 1.0) -> list[str]:
    """Compare reported final scores against the weighted formula."""
    warnings: list[str] = []
    for key, label in (
        ("corrected_before_optimization", "Before"),
        ("corrected_after_optimization", "After"),
    ):
        audit = result[key]
        expected = weighted_ats_score(audit["scores"])
        reported = float(audit["final_ats_score"])
        if abs(expected - reported) > tolerance:
            warnings.append(
                f"{label}: reported ATS score {reported:g} differs from weighted score {expected:g}"
            )
    return warnings
