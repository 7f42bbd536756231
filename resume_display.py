#!/usr/bin/env python3
"""Screen rendering for audited resumes: display nodes and the HTML preview."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from jinja2 import Environment

from resume_core import Block, BlockKind, Document


SPACER_CLASS = "h-3"
HEADING_CLASS = "mt-5 mb-2 text-base font-extrabold text-slate-900 tracking-wide"
BODY_CLASS = "text-sm text-slate-700"

SCORE_LABELS = (
    ("ats_structure", "Structure"),
    ("keyword_match", "Keywords"),
    ("experience_impact", "Impact"),
    ("formatting_readability", "Format"),
    ("seniority_alignment", "Seniority"),
)


@dataclass(frozen=True)
class DisplayNode:
    kind: str
    text: str
    css_class: str
    block_index: int


def _node_for_block(index: int, block: Block) -> DisplayNode:
    if block.kind is BlockKind.BLANK:
        return DisplayNode("spacer", "", SPACER_CLASS, index)
    if block.kind is BlockKind.HEADING:
        return DisplayNode("heading", block.text, HEADING_CLASS, index)
    return DisplayNode("body", block.text, BODY_CLASS, index)


def render_for_display(doc: Document) -> list[DisplayNode]:
    """Map each block to one display node, keeping document order."""
    return [_node_for_block(i, block) for i, block in enumerate(doc)]


_env = Environment(autoescape=True, trim_blocks=True, lstrip_blocks=True)

REPORT_TEMPLATE = _env.from_string(
    """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{{ title }}</title>
<style>
body { font-family: Helvetica, Arial, sans-serif; max-width: 52rem; margin: 2rem auto; color: #334155; }
table { border-collapse: collapse; margin-bottom: 1.5rem; }
th, td { border: 1px solid #e2e8f0; padding: .35rem .75rem; text-align: left; }
.h-3 { height: .75rem; }
.mt-5 { margin-top: 1.25rem; }
.mb-2 { margin-bottom: .5rem; }
.text-base { font-size: 1rem; }
.text-sm { font-size: .875rem; margin: 0; white-space: pre-wrap; }
.font-extrabold { font-weight: 800; }
.text-slate-900 { color: #0f172a; }
.text-slate-700 { color: #334155; }
.tracking-wide { letter-spacing: .025em; }
.resume { border: 1px solid #e2e8f0; border-radius: .75rem; padding: 2rem; }
</style>
</head>
<body>
<h1>{{ title }}</h1>
<table>
  <tr><th>Category</th><th>Before</th><th>After</th></tr>
{% for label, before_score, after_score in score_rows %}
  <tr><td>{{ label }}</td><td>{{ before_score }}</td><td>{{ after_score }}</td></tr>
{% endfor %}
  <tr><th>Final ATS score</th><th>{{ before.final_ats_score }}</th><th>{{ after.final_ats_score }}</th></tr>
  <tr><td>Confidence level</td><td>{{ before.ats_confidence_level }}</td><td>{{ after.ats_confidence_level }}</td></tr>
  <tr><td>Rejection risk</td><td>{{ before.ats_rejection_risk }}</td><td>{{ after.ats_rejection_risk }}</td></tr>
</table>
{% if findings %}
<h2>Audit findings</h2>
<ol>
{% for finding in findings %}
  <li>
    <strong>{{ finding.issue }}</strong>
    <p>{{ finding.why_it_is_a_problem }}</p>
    <p><em>Impact:</em> {{ finding.ats_real_world_impact }}</p>
    <p><em>Correction:</em> {{ finding.correction_applied }}</p>
  </li>
{% endfor %}
</ol>
{% endif %}
<h2>Credibility verdict</h2>
<p>{{ verdict.score_change_rationale }}</p>
<p>Trust level: {{ verdict.trust_level }} | Enterprise readiness: {{ verdict.enterprise_readiness }}</p>
<h2>Optimized resume</h2>
<div class="resume">
{% for node in nodes %}
{% if node.kind == "spacer" %}
  <div class="{{ node.css_class }}"></div>
{% else %}
  <p class="{{ node.css_class }}">{{ node.text }}</p>
{% endif %}
{% endfor %}
</div>
</body>
</html>
"""
)


def render_report_html(
    result: Mapping[str, Any],
    doc: Document,
    title: str = "ATS Audit Report",
) -> str:
    """Render the full audit verdict plus the rewritten resume as one HTML page."""
    before = result["corrected_before_optimization"]
    after = result["corrected_after_optimization"]
    score_rows = [
        (label, before["scores"][key], after["scores"][key]) for key, label in SCORE_LABELS
    ]
    return REPORT_TEMPLATE.render(
        title=title,
        score_rows=score_rows,
        before=before,
        after=after,
        findings=result["audit_findings"],
        verdict=result["credibility_verdict"],
        nodes=render_for_display(doc),
    )
