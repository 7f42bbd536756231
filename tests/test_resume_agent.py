import json
import threading
from io import BytesIO
from pathlib import Path

import docx
import pytest

import resume_agent
from resume_core import build_document
from resume_export import encode_to_pdf


class _FakeResponse:
    def __init__(self, text: str | None):
        self.text = text


class _FakeModels:
    def __init__(self, text: str | None, release: threading.Event | None = None):
        self._text = text
        self._release = release
        self.calls: list[dict] = []

    def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if self._release is not None:
            self._release.wait(timeout=5)
        return _FakeResponse(self._text)


class _FakeClient:
    def __init__(self, text: str | None, release: threading.Event | None = None):
        self.models = _FakeModels(text, release)


def test_mime_type_for_path() -> None:
    assert resume_agent.mime_type_for_path(Path("cv.PDF")) == resume_agent.PDF_MIME
    assert resume_agent.mime_type_for_path(Path("cv.docx")) == resume_agent.DOCX_MIME
    assert resume_agent.mime_type_for_path(Path("cv.txt")) == resume_agent.TEXT_MIME
    assert resume_agent.mime_type_for_path(Path("cv.doc")) is None


def test_extract_text_plain() -> None:
    assert resume_agent.extract_text("Jane Roe\nSKILLS".encode("utf-8"), "text/plain") == "Jane Roe\nSKILLS"


def test_extract_text_docx() -> None:
    word = docx.Document()
    word.add_paragraph("JANE ROE")
    word.add_paragraph("Platform engineer.")
    buffer = BytesIO()
    word.save(buffer)

    text = resume_agent.extract_text(buffer.getvalue(), resume_agent.DOCX_MIME)
    assert text == "JANE ROE\nPlatform engineer."


def test_extract_text_pdf(sample_resume: str) -> None:
    data = encode_to_pdf(build_document(sample_resume))
    text = resume_agent.extract_text(data, resume_agent.PDF_MIME)
    assert "PROFESSIONAL SUMMARY" in text
    assert "Experienced engineer." in text


def test_extract_text_rejects_unsupported_format() -> None:
    with pytest.raises(ValueError, match="Unsupported format"):
        resume_agent.extract_text(b"data", "application/msword")


def test_extract_text_rejects_oversized_file() -> None:
    with pytest.raises(ValueError, match="2MB"):
        resume_agent.extract_text(b"x" * (resume_agent.MAX_FILE_SIZE + 1), "text/plain")


def test_extract_text_rejects_blank_content() -> None:
    with pytest.raises(ValueError, match="meaningful text"):
        resume_agent.extract_text(b"  \n\t ", "text/plain")


def test_usage_counter_persists_increments(tmp_path: Path) -> None:
    counter = resume_agent.UsageCounter(tmp_path / "usage.yaml")
    assert counter.current_count() == 0
    assert counter.increment() == 1
    assert counter.increment() == 2
    assert resume_agent.UsageCounter(tmp_path / "usage.yaml").current_count() == 2


def test_usage_counter_ignores_invalid_content(tmp_path: Path) -> None:
    path = tmp_path / "usage.yaml"
    path.write_text("count: lots\n", encoding="utf-8")
    assert resume_agent.UsageCounter(path).current_count() == 0

    path.write_text("- 1\n- 2\n", encoding="utf-8")
    assert resume_agent.UsageCounter(path).current_count() == 0


def test_check_usage_allowed(tmp_path: Path) -> None:
    counter = resume_agent.UsageCounter(tmp_path / "usage.yaml")
    assert resume_agent.check_usage_allowed(counter, max_usage=2) == 0
    counter.increment()
    assert resume_agent.check_usage_allowed(counter, max_usage=2) == 1
    counter.increment()

    with pytest.raises(resume_agent.UsageLimitError) as exc_info:
        resume_agent.check_usage_allowed(counter, max_usage=2)
    assert str(exc_info.value) == "Usage limit reached."
    assert "2 times" in exc_info.value.hint


def test_analyze_resume_returns_validated_result(analysis_result: dict) -> None:
    client = _FakeClient(json.dumps(analysis_result))

    result = resume_agent.analyze_resume(client, "RESUME BODY", job_description="Go developer")

    assert result == analysis_result
    (call,) = client.models.calls
    assert call["model"] == resume_agent.MODEL_NAME
    assert "RESUME BODY" in call["contents"]
    assert "Go developer" in call["contents"]
    assert call["config"].response_mime_type == "application/json"
    assert call["config"].temperature == 0
    assert call["config"].seed == 42


def test_analyze_resume_empty_response_raises() -> None:
    with pytest.raises(ValueError, match="empty audit data"):
        resume_agent.analyze_resume(_FakeClient(""), "RESUME")


def test_analyze_resume_malformed_json_raises() -> None:
    with pytest.raises(ValueError, match="malformed"):
        resume_agent.analyze_resume(_FakeClient("{not json"), "RESUME")


def test_analyze_resume_incomplete_result_raises(analysis_result: dict) -> None:
    del analysis_result["corrected_optimized_resume"]
    with pytest.raises(ValueError, match="corrected_optimized_resume"):
        resume_agent.analyze_resume(_FakeClient(json.dumps(analysis_result)), "RESUME")


def test_analyze_resume_cancelled_before_response(analysis_result: dict) -> None:
    release = threading.Event()
    cancel = threading.Event()
    client = _FakeClient(json.dumps(analysis_result), release=release)
    timer = threading.Timer(0.05, cancel.set)
    timer.start()
    try:
        with pytest.raises(resume_agent.AuditCancelledError):
            resume_agent.analyze_resume(client, "RESUME", cancel_event=cancel)
    finally:
        timer.cancel()
        release.set()


def test_main_writes_all_artifacts(monkeypatch, tmp_path: Path, analysis_result: dict) -> None:
    client = _FakeClient(json.dumps(analysis_result))
    monkeypatch.setattr(resume_agent.genai, "Client", lambda api_key: client)
    usage_file = tmp_path / "usage.yaml"
    out_dir = tmp_path / "out"

    resume_agent.main(
        [
            "--resume-text",
            "jane roe\nskills\n**Go**",
            "--output-dir",
            str(out_dir),
            "--usage-file",
            str(usage_file),
            "--api-key",
            "test-key",
        ]
    )

    for name in (
        resume_agent.PDF_FILENAME,
        resume_agent.DOCX_FILENAME,
        resume_agent.HTML_FILENAME,
        resume_agent.RESULT_FILENAME,
    ):
        assert (out_dir / name).stat().st_size > 0
    saved = json.loads((out_dir / resume_agent.RESULT_FILENAME).read_text(encoding="utf-8"))
    assert saved == analysis_result
    paragraphs = docx.Document(str(out_dir / resume_agent.DOCX_FILENAME)).paragraphs
    assert paragraphs[0].text == "JOHN DOE"
    assert resume_agent.UsageCounter(usage_file).current_count() == 1


def test_main_reads_resume_file(monkeypatch, tmp_path: Path, analysis_result: dict, capsys) -> None:
    client = _FakeClient(json.dumps(analysis_result))
    monkeypatch.setattr(resume_agent.genai, "Client", lambda api_key: client)
    resume_path = tmp_path / "resume.txt"
    resume_path.write_text("Jane Roe\nEXPERIENCE\n- Built billing APIs", encoding="utf-8")

    resume_agent.main(
        [
            "--resume",
            str(resume_path),
            "--jd-text",
            "Backend engineer, Go",
            "--output-dir",
            str(tmp_path / "out"),
            "--usage-file",
            str(tmp_path / "usage.yaml"),
            "--api-key",
            "test-key",
        ]
    )

    (call,) = client.models.calls
    assert "- Built billing APIs" in call["contents"]
    assert "Backend engineer, Go" in call["contents"]
    assert "COMPLETE!" in capsys.readouterr().out


def test_main_stops_when_usage_limit_reached(monkeypatch, tmp_path: Path, capsys) -> None:
    def fail_client(api_key):
        raise AssertionError("Client must not be created once the limit is reached.")

    monkeypatch.setattr(resume_agent.genai, "Client", fail_client)
    usage_file = tmp_path / "usage.yaml"
    usage_file.write_text("count: 2\n", encoding="utf-8")

    with pytest.raises(SystemExit) as exc_info:
        resume_agent.main(
            ["--resume-text", "Jane Roe", "--usage-file", str(usage_file), "--api-key", "k"]
        )

    assert exc_info.value.code == 1
    assert "Usage limit reached." in capsys.readouterr().err


def test_main_provider_failure_does_not_count_usage(monkeypatch, tmp_path: Path, capsys) -> None:
    monkeypatch.setattr(resume_agent.genai, "Client", lambda api_key: _FakeClient(""))
    usage_file = tmp_path / "usage.yaml"

    with pytest.raises(SystemExit):
        resume_agent.main(
            [
                "--resume-text",
                "Jane Roe",
                "--usage-file",
                str(usage_file),
                "--output-dir",
                str(tmp_path / "out"),
                "--api-key",
                "k",
            ]
        )

    assert "empty audit data" in capsys.readouterr().err
    assert resume_agent.UsageCounter(usage_file).current_count() == 0


def test_get_api_key_exits_without_key(monkeypatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    with pytest.raises(SystemExit):
        resume_agent.get_api_key(None)


def test_get_api_key_prefers_cli_then_env(monkeypatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "from-env")
    assert resume_agent.get_api_key("from-cli") == "from-cli"
    assert resume_agent.get_api_key(None) == "from-env"
