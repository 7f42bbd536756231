#!/usr/bin/env python3
"""
ATS Resume Auditor - Scores and rewrites a resume using Gemini, then exports it.

Usage:
    python resume_agent.py --resume Resume.pdf [--jd-file JD.txt] [--output-dir out] [--api-key KEY]
    python resume_agent.py --resume-text "$(cat resume.txt)"

Outputs (in --output-dir, default ./audited_resumes):
    - ATS_Audited_Resume.pdf
    - ATS_Audited_Resume.docx
    - ATS_Audited_Resume.html (preview with scores and findings)
    - ATS_Audit_Result.json (raw verdict)
"""

import argparse
import json
import os
import signal
import sys
import time
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from contextlib import contextmanager
from io import BytesIO
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from google import genai
from google.genai import types
import pypdf
import yaml
from docx import Document

from resume_core import (
    FINDING_KEYS,
    SCORE_WEIGHTS,
    SECTION_KEYS,
    VERDICT_KEYS,
    build_audit_prompt,
    build_document,
    check_for_markdown,
    score_mismatch_warnings,
    validate_analysis_result,
)
from resume_display import SCORE_LABELS, render_report_html
from resume_export import DOCX_FILENAME, PDF_FILENAME, encode_to_docx, encode_to_pdf

# === CONFIGURATION ===
MODEL_NAME = "gemini-2.0-flash-lite"
WORKSPACE_DIR = Path(__file__).parent.resolve()
DEFAULT_OUTPUT_DIR = WORKSPACE_DIR / "audited_resumes"
DEFAULT_USAGE_FILE = WORKSPACE_DIR / ".ats_usage.yaml"
HTML_FILENAME = "ATS_Audited_Resume.html"
RESULT_FILENAME = "ATS_Audit_Result.json"
MAX_USAGE = 2
MAX_FILE_SIZE = 2 * 1024 * 1024
CANCEL_POLL_SECONDS = 0.1

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_MIME = "text/plain"
MIME_TYPES_BY_SUFFIX = {
    ".pdf": PDF_MIME,
    ".docx": DOCX_MIME,
    ".txt": TEXT_MIME,
}


class AuditCancelledError(Exception):
    """Raised when the caller cancels an in-flight audit."""


class UsageLimitError(Exception):
    """Raised when the local audit allowance is used up."""

    def __init__(self, count: int, max_usage: int):
        super().__init__("Usage limit reached.")
        self.count = count
        self.max_usage = max_usage
        self.hint = (
            f"You have already used the free ATS audit {max_usage} times on this machine. "
            "Please upgrade your plan or use another account/device."
        )


# === PERFORMANCE UTILITIES ===
@contextmanager
def timed_section(name: str):
    """Context manager to time and report section duration."""
    start = time.perf_counter()
    yield
    elapsed = time.perf_counter() - start
    print(f"  [TIMING] {name}: {elapsed:.2f}s")


class Spinner:
    """Minimal CLI spinner for long-running operations."""
    UNICODE_FRAMES = ["⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏"]
    ASCII_FRAMES = ["-", "\\", "|", "/"]

    def __init__(self, message: str = "Processing"):
        self.message = message
        self._stop_event = threading.Event()
        self._thread = None
        self.frames = self._resolve_frames()

    def _resolve_frames(self) -> list[str]:
        """Choose spinner frames compatible with current stdout encoding."""
        encoding = sys.stdout.encoding or "utf-8"
        try:
            for frame in self.UNICODE_FRAMES:
                frame.encode(encoding)
            return self.UNICODE_FRAMES
        except (LookupError, UnicodeEncodeError):
            return self.ASCII_FRAMES

    def _spin(self):
        idx = 0
        while not self._stop_event.is_set():
            frame = self.frames[idx % len(self.frames)]
            print(f"\r  {frame} {self.message}...", end="", flush=True)
            idx += 1
            time.sleep(0.1)
        print("\r" + " " * (len(self.message) + 10) + "\r", end="", flush=True)

    def __enter__(self):
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._spin, daemon=True)
        self._thread.start()
        return self

    def __exit__(self, *args):
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=0.5)


# === RESPONSE SCHEMA ===
def _string_schema() -> types.Schema:
    return types.Schema(type=types.Type.STRING)


def _number_schema() -> types.Schema:
    return types.Schema(type=types.Type.NUMBER)


def _object_schema(properties: dict[str, types.Schema]) -> types.Schema:
    return types.Schema(type=types.Type.OBJECT, properties=properties, required=list(properties))


def _audit_data_schema() -> types.Schema:
    return _object_schema(
        {
            "scores": _object_schema({key: _number_schema() for key in SCORE_WEIGHTS}),
            "final_ats_score": _number_schema(),
            "ats_confidence_level": _number_schema(),
            "ats_rejection_risk": _string_schema(),
        }
    )


ANALYSIS_SCHEMA = _object_schema(
    {
        "audit_findings": types.Schema(
            type=types.Type.ARRAY,
            items=_object_schema({key: _string_schema() for key in FINDING_KEYS}),
        ),
        "corrected_before_optimization": _audit_data_schema(),
        "corrected_optimized_resume": _object_schema(
            {
                "plain_text": _string_schema(),
                "sections": _object_schema({key: _string_schema() for key in SECTION_KEYS}),
            }
        ),
        "corrected_after_optimization": _audit_data_schema(),
        "credibility_verdict": _object_schema({key: _string_schema() for key in VERDICT_KEYS}),
    }
)


# === USAGE LIMIT ===
class UsageCounter:
    """Completed-audit counter persisted as a small YAML file."""

    def __init__(self, path: Path):
        self.path = path

    def current_count(self) -> int:
        if not self.path.exists():
            return 0
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            print(f"WARNING: Failed to read usage count from {self.path}: {e}", file=sys.stderr)
            return 0
        count = data.get("count") if isinstance(data, dict) else None
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            print(f"WARNING: Ignoring invalid usage count in {self.path}", file=sys.stderr)
            return 0
        return count

    def increment(self) -> int:
        count = self.current_count() + 1
        try:
            self.path.write_text(yaml.safe_dump({"count": count}), encoding="utf-8")
        except OSError as e:
            print(f"WARNING: Failed to save usage count: {e}", file=sys.stderr)
        return count


def check_usage_allowed(counter: UsageCounter, max_usage: int = MAX_USAGE) -> int:
    """Return the current count, or raise UsageLimitError once the allowance is spent."""
    count = counter.current_count()
    if count >= max_usage:
        raise UsageLimitError(count, max_usage)
    return count


# === TEXT EXTRACTION ===
def mime_type_for_path(path: Path) -> str | None:
    """Map a resume file suffix to its MIME type."""
    return MIME_TYPES_BY_SUFFIX.get(path.suffix.lower())


def extract_text_from_pdf(data: bytes) -> str:
    """Extract text content from PDF bytes, one blank line between pages."""
    reader = pypdf.PdfReader(BytesIO(data))
    return "\n\n".join(page.extract_text() or "" for page in reader.pages)


def extract_text_from_docx(data: bytes) -> str:
    """Extract paragraph text from DOCX bytes."""
    word = Document(BytesIO(data))
    return "\n".join(paragraph.text for paragraph in word.paragraphs)


def extract_text(data: bytes, mime_type: str | None) -> str:
    """Decode an uploaded resume into a single string."""
    if len(data) > MAX_FILE_SIZE:
        raise ValueError("File size exceeds 2MB limit.")

    if mime_type == PDF_MIME:
        text = extract_text_from_pdf(data)
    elif mime_type == DOCX_MIME:
        text = extract_text_from_docx(data)
    elif mime_type == TEXT_MIME:
        text = data.decode("utf-8", errors="replace")
    else:
        raise ValueError("Unsupported format. Please use PDF, DOCX, or TXT.")

    if not text.strip():
        raise ValueError("Could not extract meaningful text.")
    return text


def load_text_file(path: Path, label: str) -> str:
    """Validate and extract text from a resume or JD file, exiting on failure."""
    if not path.exists():
        print(f"ERROR: {label} file not found: {path}", file=sys.stderr)
        sys.exit(1)
    if not path.is_file():
        print(f"ERROR: {label} is not a file: {path}", file=sys.stderr)
        sys.exit(1)
    try:
        return extract_text(path.read_bytes(), mime_type_for_path(path))
    except Exception as e:
        print(f"ERROR: Failed to read {label.lower()} {path.name}: {e}", file=sys.stderr)
        sys.exit(1)


# === INFERENCE ===
def analyze_resume(
    client: genai.Client,
    resume_text: str,
    job_description: str | None = None,
    cancel_event: threading.Event | None = None,
    model: str = MODEL_NAME,
) -> dict:
    """Send one audit request and return the validated analysis result.

    The request runs on a worker thread so that setting *cancel_event*
    abandons it and raises AuditCancelledError.
    """
    prompt = build_audit_prompt(resume_text, job_description)
    config = types.GenerateContentConfig(
        temperature=0,
        seed=42,
        response_mime_type="application/json",
        response_schema=ANALYSIS_SCHEMA,
    )

    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(
            client.models.generate_content,
            model=model,
            contents=prompt,
            config=config,
        )
        while True:
            if cancel_event is not None and cancel_event.is_set():
                future.cancel()
                raise AuditCancelledError("Audit cancelled.")
            try:
                response = future.result(timeout=CANCEL_POLL_SECONDS)
                break
            except FutureTimeoutError:
                continue
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    text = response.text
    if not text:
        raise ValueError("AI returned empty audit data.")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"AI returned malformed audit data: {e}") from e
    return validate_analysis_result(data)


# === CLI ===
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse and validate command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Audit a resume the way an ATS would and export the corrected version.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Defaults:
  --output-dir  {DEFAULT_OUTPUT_DIR}
  --usage-file  {DEFAULT_USAGE_FILE}
  --max-usage   {MAX_USAGE}
  --model       {MODEL_NAME}
""",
    )
    parser.add_argument("--resume", help="Path to the resume (PDF, DOCX, or TXT)")
    parser.add_argument("--resume-text", help="Resume text passed inline (overrides --resume)")
    parser.add_argument("--jd-text", help="Optional job description text")
    parser.add_argument("--jd-file", help="Optional job description file (PDF, DOCX, or TXT)")
    parser.add_argument("--output-dir", help="Directory for exported documents")
    parser.add_argument("--usage-file", help="YAML file tracking completed audits")
    parser.add_argument("--max-usage", type=int, default=MAX_USAGE, help="Number of audits allowed")
    parser.add_argument("--api-key", help="Gemini API key (overrides GEMINI_API_KEY env var)")
    parser.add_argument("--model", default=MODEL_NAME, help="Gemini model name")
    return parser.parse_args(argv)


def get_api_key(cli_key: str | None) -> str:
    """Get API key from CLI arg or environment variable."""
    if cli_key:
        return cli_key
    env_key = os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")
    if env_key:
        return env_key
    print("ERROR: No API key provided.", file=sys.stderr)
    print("Set GEMINI_API_KEY environment variable or use --api-key argument.", file=sys.stderr)
    sys.exit(1)


def print_section(title: str, content: str) -> None:
    """Print a clearly labeled section to terminal."""
    print(f"\n{'=' * 60}")
    print(f"=== {title} ===")
    print("=" * 60)
    print(content)
    print()


def format_scores(result: dict) -> str:
    """Format before/after scores as aligned terminal lines."""
    before = result["corrected_before_optimization"]
    after = result["corrected_after_optimization"]
    lines = [
        f"{label:<12} {before['scores'][key]:>6g} -> {after['scores'][key]:g}"
        for key, label in SCORE_LABELS
    ]
    lines.append("-" * 30)
    lines.append(f"{'ATS score':<12} {before['final_ats_score']:>6g} -> {after['final_ats_score']:g}")
    lines.append(
        f"{'Confidence':<12} {before['ats_confidence_level']:>6g} -> {after['ats_confidence_level']:g}"
    )
    lines.append(f"Rejection risk: {before['ats_rejection_risk']} -> {after['ats_rejection_risk']}")
    return "\n".join(lines)


def format_findings(result: dict) -> str:
    findings = result["audit_findings"]
    if not findings:
        return "- None"
    blocks = []
    for i, finding in enumerate(findings, 1):
        blocks.append(
            f"{i}. {finding['issue']}\n"
            f"   Why: {finding['why_it_is_a_problem']}\n"
            f"   Impact: {finding['ats_real_world_impact']}\n"
            f"   Fix: {finding['correction_applied']}"
        )
    return "\n".join(blocks)


def save_output(path: Path, content: str | bytes) -> Path:
    """Write text or binary content and report the path."""
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    print(f"Saved: {path}")
    return path


def run_audit(client: genai.Client, resume_text: str, job_description: str | None, model: str) -> dict:
    """Run the audit with Ctrl+C wired to cancellation. Exits on failure."""
    cancel_event = threading.Event()
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel_event.set())
    try:
        with Spinner("Gemini auditing resume"), timed_section("Audit API"):
            return analyze_resume(
                client,
                resume_text,
                job_description=job_description,
                cancel_event=cancel_event,
                model=model,
            )
    except AuditCancelledError:
        print("\nAudit cancelled.", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        error_msg = str(e).lower()
        if "api key" in error_msg or "authentication" in error_msg or "401" in error_msg:
            print("ERROR: Authentication failed. Check your API key.", file=sys.stderr)
        elif "quota" in error_msg or "429" in error_msg:
            print("ERROR: API quota exceeded. Try again later.", file=sys.stderr)
        elif "model" in error_msg or "404" in error_msg:
            print(f"ERROR: Model '{model}' not found or unavailable.", file=sys.stderr)
        else:
            print(f"ERROR: The Auditor encountered an issue: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    total_start = time.perf_counter()

    args = parse_args(argv)
    api_key = get_api_key(args.api_key)

    # Resolve resume text
    if args.resume_text and args.resume_text.strip():
        resume_text = args.resume_text
        resume_label = "inline --resume-text"
    elif args.resume:
        resume_path = Path(args.resume)
        with timed_section("Resume extraction"):
            resume_text = load_text_file(resume_path, "Resume")
        resume_label = str(resume_path)
    else:
        print("ERROR: Provide --resume or --resume-text.", file=sys.stderr)
        sys.exit(1)

    # Resolve optional JD
    job_description: str | None = None
    jd_label = "[none]"
    if args.jd_text and args.jd_text.strip():
        job_description = args.jd_text.strip()
        jd_label = "inline --jd-text"
    elif args.jd_file:
        job_description = load_text_file(Path(args.jd_file), "Job Description")
        jd_label = args.jd_file

    output_dir = Path(args.output_dir) if args.output_dir else DEFAULT_OUTPUT_DIR
    counter = UsageCounter(Path(args.usage_file) if args.usage_file else DEFAULT_USAGE_FILE)

    try:
        used = check_usage_allowed(counter, args.max_usage)
    except UsageLimitError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        print(e.hint, file=sys.stderr)
        sys.exit(1)

    print("-" * 60)
    print(f"Resume: {resume_label}")
    print(f"Job Description: {jd_label}")
    print(f"Model: {args.model}")
    print(f"Uses: {used} / {args.max_usage}")
    print("-" * 60)

    try:
        client = genai.Client(api_key=api_key)
    except Exception as e:
        print(f"ERROR: Failed to initialize Gemini client: {e}", file=sys.stderr)
        sys.exit(1)

    print("\n[Phase 1/2] Running ATS quality audit...")
    result = run_audit(client, resume_text, job_description, args.model)
    used = counter.increment()

    print_section("ATS SCORES (BEFORE -> AFTER)", format_scores(result))
    for warning in score_mismatch_warnings(result):
        print(f"WARNING: {warning}")
    print_section("AUDIT FINDINGS", format_findings(result))
    verdict = result["credibility_verdict"]
    print_section(
        "CREDIBILITY VERDICT",
        f"{verdict['score_change_rationale']}\n"
        f"Trust level: {verdict['trust_level']}\n"
        f"Enterprise readiness: {verdict['enterprise_readiness']}",
    )

    optimized_text = result["corrected_optimized_resume"]["plain_text"]
    print_section("OPTIMIZED RESUME", optimized_text)

    md_warnings = check_for_markdown(optimized_text)
    if md_warnings:
        print("WARNING: Markdown-like formatting detected in optimized resume:")
        for w in md_warnings[:5]:
            print(f"  - {w}")
        print()

    print("\n[Phase 2/2] Exporting documents...")
    output_dir.mkdir(parents=True, exist_ok=True)
    doc = build_document(optimized_text)
    with timed_section("Export"):
        pdf_path = save_output(output_dir / PDF_FILENAME, encode_to_pdf(doc))
        docx_path = save_output(output_dir / DOCX_FILENAME, encode_to_docx(doc))
        html_path = save_output(output_dir / HTML_FILENAME, render_report_html(result, doc))
        json_path = save_output(output_dir / RESULT_FILENAME, json.dumps(result, indent=2))

    total_elapsed = time.perf_counter() - total_start

    print("\n" + "=" * 60)
    print("COMPLETE! Your audited resume is saved to:")
    print(f"  - PDF: {pdf_path}")
    print(f"  - Word: {docx_path}")
    print(f"  - Preview: {html_path}")
    print(f"  - Verdict: {json_path}")
    print(f"  - Uses: {used} / {args.max_usage}")
    print(f"  - Total time: {total_elapsed:.2f}s")
    print("=" * 60)


if __name__ == "__main__":
    main()
