"""
Integration tests against a real Tectonic installation.

Tectonic downloads support packages on first use, so these tests also need
network access the first time they run against an empty cache.
"""

import asyncio
import shutil

import pytest

from quill.contexts.rendering import CompilationService, FailureKind, load_config
from quill.contexts.templating import ResumeRecord

TECTONIC_AVAILABLE = shutil.which("tectonic") is not None
skip_if_no_tectonic = pytest.mark.skipif(
    not TECTONIC_AVAILABLE, reason="tectonic not installed - see https://tectonic-typesetting.github.io"
)


@pytest.fixture
def service(tmp_path):
    config = load_config(
        compiler_path="tectonic",
        cache_root=tmp_path / "cache",
        tmp_root=tmp_path / "jobs",
        logs_path=tmp_path / "logs",
        timeout_s=300,
    )
    service = CompilationService(config=config)
    service.ensure_ready()
    return service


@pytest.mark.integration
@pytest.mark.latex
@skip_if_no_tectonic
def test_compile_resume_to_pdf(service, sample_resume_dict):
    result = asyncio.run(service.compile_resume(ResumeRecord.from_dict(sample_resume_dict)))

    assert result.success, service.error_payload(result)
    assert result.artifact.startswith(b"%PDF")
    assert result.page_count == 1
    assert list(service.config.tmp_root.iterdir()) == []

    snapshot = asyncio.run(service.health())
    assert snapshot.total_size_bytes > 0


@pytest.mark.integration
@pytest.mark.latex
@skip_if_no_tectonic
def test_compile_with_intentional_error(service):
    broken = r"""
\documentclass{article}
\begin{document}
This has an \undefinedcommand{test} that should fail.
\end{document}
"""
    result = asyncio.run(service.compile_source(broken))

    assert result.failure_kind == FailureKind.COMPILER_ERROR
    assert "Undefined control sequence" in result.diagnostics
    assert list(service.config.tmp_root.iterdir()) == []
