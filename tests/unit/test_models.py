"""Unit tests for compilation results, error payloads and excerpt sanitizing."""

from pathlib import Path

import pytest

from quill.contexts.rendering.exceptions import (
    OverloadedError,
    ToolMissingError,
    WorkspaceError,
)
from quill.contexts.rendering.models import CompilationResult, FailureKind, JobState
from quill.utils.text_processing import sanitize_excerpt, truncate_display


@pytest.mark.unit
def test_success_result():
    result = CompilationResult.ok(b"%PDF-1.4", page_count=1)

    assert result.success
    assert result.failure_kind is None
    assert not result.retryable
    with pytest.raises(ValueError):
        result.to_error_dict()


@pytest.mark.unit
@pytest.mark.parametrize(
    "kind,retryable",
    [
        (FailureKind.OVERLOADED, True),
        (FailureKind.TIMEOUT, True),
        (FailureKind.COMPILER_ERROR, False),
        (FailureKind.CANCELLED, False),
        (FailureKind.TOOL_MISSING, False),
    ],
)
def test_retryable_kinds(kind, retryable):
    assert CompilationResult.failure(kind, "x").retryable is retryable


@pytest.mark.unit
def test_error_dict_is_bounded_and_redacted():
    workspace = Path("/tmp/quill-jobs/job-0123abcd")
    diagnostics = "\x1b[1m" + "noise\n" * 500 + f"error: {workspace}/texput.tex:12: Undefined control sequence"
    result = CompilationResult.failure(FailureKind.COMPILER_ERROR, "Compiler exited with code 1", diagnostics)

    error = result.to_error_dict(max_detail_chars=120, redact_paths=[workspace.parent])

    assert set(error) == {"kind", "message", "detail", "retryable"}
    assert error["kind"] == "compiler_error"
    assert error["retryable"] is False
    assert len(error["detail"]) <= 120
    assert error["detail"].startswith("...")
    assert error["detail"].endswith("<redacted>/job-0123abcd/texput.tex:12: Undefined control sequence")
    assert "/tmp/quill-jobs" not in error["detail"]
    assert "\x1b" not in error["detail"]


@pytest.mark.unit
def test_with_job_keeps_outcome():
    result = CompilationResult.failure(FailureKind.TIMEOUT, "Compilation exceeded 60s")
    tagged = result.with_job("abc", 60.01)

    assert tagged.job_id == "abc"
    assert tagged.elapsed_s == 60.01
    assert tagged.failure_kind == FailureKind.TIMEOUT
    assert result.job_id is None


@pytest.mark.unit
def test_job_state_terminal():
    assert not JobState.QUEUED.is_terminal
    assert not JobState.RUNNING.is_terminal
    assert JobState.SUCCEEDED.is_terminal
    assert JobState.CANCELLED.is_terminal


@pytest.mark.unit
def test_exceptions_carry_failure_kind():
    assert ToolMissingError("tectonic").kind == FailureKind.TOOL_MISSING
    assert "LATEX_COMPILER" in ToolMissingError("tectonic").message
    assert OverloadedError(active=1, queued=8).kind == FailureKind.OVERLOADED
    assert WorkspaceError(Path("/tmp/x"), OSError("disk full")).kind == FailureKind.WORKSPACE_ERROR


@pytest.mark.unit
def test_sanitize_excerpt_short_text_unchanged():
    assert sanitize_excerpt("  ! Missing $ inserted.  ", 100) == "! Missing $ inserted."
    assert sanitize_excerpt("abcdef", 0) == ""


@pytest.mark.unit
def test_truncate_display():
    assert truncate_display("short", 10) == "short"
    assert truncate_display("this is a very long string", 10) == "this is..."
