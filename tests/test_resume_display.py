from resume_core import build_document, heading_indices
from resume_display import BODY_CLASS, HEADING_CLASS, SPACER_CLASS, render_for_display, render_report_html


def test_render_for_display_maps_each_block(sample_resume: str) -> None:
    doc = build_document(sample_resume)
    nodes = render_for_display(doc)

    assert [node.kind for node in nodes] == [
        "heading",
        "spacer",
        "heading",
        "body",
        "spacer",
        "heading",
        "body",
        "body",
    ]
    assert [node.block_index for node in nodes] == list(range(len(doc)))
    assert nodes[0].text == "JOHN DOE"
    assert nodes[0].css_class == HEADING_CLASS
    assert nodes[1].text == ""
    assert nodes[1].css_class == SPACER_CLASS
    assert nodes[6].text == "- Go"
    assert nodes[6].css_class == BODY_CLASS


def test_render_for_display_headings_match_document() -> None:
    doc = build_document("name here\nEXPERIENCE\nAcme Corp, 2020\n- BUILT APIS\nAWS")
    nodes = render_for_display(doc)
    assert [n.block_index for n in nodes if n.kind == "heading"] == heading_indices(doc)


def test_render_report_html_contains_verdict_and_resume(analysis_result: dict) -> None:
    doc = build_document(analysis_result["corrected_optimized_resume"]["plain_text"])
    html = render_report_html(analysis_result, doc)

    assert html.startswith("<!DOCTYPE html>")
    assert "Markdown headings in summary" in html
    assert "51.5" in html
    assert "80.25" in html
    assert "Ready for Workday and Greenhouse." in html
    assert f'<p class="{HEADING_CLASS}">PROFESSIONAL SUMMARY</p>' in html
    assert f'<p class="{BODY_CLASS}">- Rust</p>' in html
    assert f'<div class="{SPACER_CLASS}"></div>' in html


def test_render_report_html_escapes_resume_text(analysis_result: dict) -> None:
    doc = build_document("Led R&D <platform> work")
    html = render_report_html(analysis_result, doc)
    assert "R&amp;D &lt;platform&gt;" in html
    assert "<platform>" not in html
