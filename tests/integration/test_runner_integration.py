"""
Integration tests for SubprocessJobRunner - real child processes, fake compilers.
"""

import asyncio
import os

import pytest

from quill.contexts.rendering.cache import CacheDirectoryManager
from quill.contexts.rendering.models import FailureKind
from quill.contexts.rendering.runner import MAX_DIAGNOSTIC_BYTES, SubprocessJobRunner, resolve_binary
from quill.contexts.rendering.workspace import workspace

from conftest import (
    FAKE_COMPILER_ARGS,
    FAKE_COMPILER_ERROR,
    FAKE_HANG,
    FAKE_NO_ARTIFACT,
    FAKE_SUCCESS,
    FAKE_UNREADABLE_ARTIFACT,
    write_fake_compiler,
)

DOCUMENT = r"\documentclass{article}\begin{document}Hi\end{document}"


def _compile(runner, tmp_path, source=DOCUMENT):
    cache = CacheDirectoryManager(tmp_path / "cache").shared_cache()

    async def scenario():
        with workspace(tmp_path / "jobs") as handle:
            return await runner.compile(source, handle, cache), handle

    return asyncio.run(scenario())


@pytest.mark.integration
def test_resolve_binary(bin_dir):
    script = write_fake_compiler(bin_dir, FAKE_SUCCESS)
    not_executable = bin_dir / "plain"
    not_executable.write_text("")

    assert resolve_binary(str(script)) == script.resolve()
    assert resolve_binary("sh") is not None
    assert resolve_binary(str(not_executable)) is None
    assert resolve_binary(str(bin_dir / "missing")) is None
    assert resolve_binary("definitely-not-a-real-compiler-xyz") is None


@pytest.mark.integration
def test_successful_compilation(tmp_path, bin_dir):
    runner = SubprocessJobRunner(str(write_fake_compiler(bin_dir, FAKE_SUCCESS)), FAKE_COMPILER_ARGS)

    result, handle = _compile(runner, tmp_path)

    assert result.success, result.message
    assert result.artifact == b"%PDF-1.4 fake"
    assert "wrote texput.pdf" in result.diagnostics
    assert not handle.path.exists()


@pytest.mark.integration
def test_compiler_receives_workspace_and_cache_environment(tmp_path, bin_dir):
    script = write_fake_compiler(
        bin_dir,
        '#!/bin/sh\n'
        'cat > "$1/stdin.tex"\n'
        'printf "%s\\n%s\\n%s\\n" "$TECTONIC_CACHE_DIR" "$XDG_CACHE_HOME" "$HOME" > "$1/env.txt"\n'
        'cat "$1/stdin.tex" "$1/env.txt" > "$1/texput.pdf"\n',
    )
    runner = SubprocessJobRunner(str(script), FAKE_COMPILER_ARGS)

    result, handle = _compile(runner, tmp_path)

    assert result.success, result.diagnostics
    # Source arrives on stdin verbatim (no trailing newline), then the environment
    assert result.artifact.decode() == (
        DOCUMENT
        + f"{tmp_path / 'cache' / 'package-cache'}\n"
        + f"{tmp_path / 'cache' / 'aux-cache'}\n"
        + f"{handle.path}\n"
    )


@pytest.mark.integration
def test_compiler_error_captures_diagnostics(tmp_path, bin_dir):
    runner = SubprocessJobRunner(str(write_fake_compiler(bin_dir, FAKE_COMPILER_ERROR)), FAKE_COMPILER_ARGS)

    result, handle = _compile(runner, tmp_path)

    assert result.failure_kind == FailureKind.COMPILER_ERROR
    assert "code 1" in result.message
    assert "Undefined control sequence" in result.diagnostics
    assert result.artifact is None
    assert not handle.path.exists()


@pytest.mark.integration
def test_exit_zero_without_artifact(tmp_path, bin_dir):
    runner = SubprocessJobRunner(str(write_fake_compiler(bin_dir, FAKE_NO_ARTIFACT)), FAKE_COMPILER_ARGS)

    result, handle = _compile(runner, tmp_path)

    assert result.failure_kind == FailureKind.ARTIFACT_MISSING
    assert "nothing to do" in result.diagnostics
    assert not handle.path.exists()


@pytest.mark.integration
def test_unreadable_artifact_is_a_typed_failure(tmp_path, bin_dir):
    runner = SubprocessJobRunner(str(write_fake_compiler(bin_dir, FAKE_UNREADABLE_ARTIFACT)), FAKE_COMPILER_ARGS)

    result, handle = _compile(runner, tmp_path)

    assert result.failure_kind == FailureKind.ARTIFACT_MISSING
    assert "could not be read" in result.message
    assert not handle.path.exists()


@pytest.mark.integration
def test_empty_input_never_spawns(tmp_path, bin_dir):
    marker = tmp_path / "spawned"
    script = write_fake_compiler(bin_dir, f'#!/bin/sh\ntouch "{marker}"\n')
    runner = SubprocessJobRunner(str(script), FAKE_COMPILER_ARGS)

    for source in ["", "   \n\t  "]:
        result, _handle = _compile(runner, tmp_path, source=source)
        assert result.failure_kind == FailureKind.EMPTY_INPUT

    assert not marker.exists()


@pytest.mark.integration
def test_missing_binary(tmp_path):
    runner = SubprocessJobRunner(str(tmp_path / "no-such-compiler"), FAKE_COMPILER_ARGS)

    assert not runner.binary_available()
    result, _handle = _compile(runner, tmp_path)
    assert result.failure_kind == FailureKind.TOOL_MISSING


@pytest.mark.integration
def test_spawn_failure(tmp_path, bin_dir):
    script = write_fake_compiler(bin_dir, "#!/nonexistent/interpreter\n")
    runner = SubprocessJobRunner(str(script), FAKE_COMPILER_ARGS)

    result, _handle = _compile(runner, tmp_path)

    assert result.failure_kind == FailureKind.SPAWN_FAILURE
    assert "Could not start compiler" in result.message


@pytest.mark.integration
def test_large_output_does_not_deadlock(tmp_path, bin_dir):
    """Output well beyond the pipe buffer is drained while the compiler runs."""
    script = write_fake_compiler(
        bin_dir,
        '#!/bin/sh\n'
        'cat > /dev/null\n'
        'i=0\n'
        'while [ $i -lt 4000 ]; do echo "line $i of compiler chatter padding padding padding" >&2; i=$((i+1)); done\n'
        'exit 3\n',
    )
    runner = SubprocessJobRunner(str(script), FAKE_COMPILER_ARGS)

    result, _handle = _compile(runner, tmp_path, source=DOCUMENT * 5000)

    assert result.failure_kind == FailureKind.COMPILER_ERROR
    assert result.diagnostics.rstrip().endswith("line 3999 of compiler chatter padding padding padding")
    assert "truncated" not in result.message


@pytest.mark.integration
def test_oversized_diagnostics_are_truncated_and_flagged(tmp_path, bin_dir):
    script = write_fake_compiler(
        bin_dir,
        '#!/bin/sh\n'
        'cat > /dev/null\n'
        'i=0\n'
        'while [ $i -lt 8000 ]; do echo "line $i of compiler chatter padding padding padding" >&2; i=$((i+1)); done\n'
        'exit 1\n',
    )
    runner = SubprocessJobRunner(str(script), FAKE_COMPILER_ARGS)

    result, _handle = _compile(runner, tmp_path)

    assert result.failure_kind == FailureKind.COMPILER_ERROR
    assert "diagnostics truncated to the last 256 KiB" in result.message
    assert len(result.diagnostics.encode()) <= MAX_DIAGNOSTIC_BYTES
    assert "line 0 of" not in result.diagnostics
    assert result.diagnostics.rstrip().endswith("line 7999 of compiler chatter padding padding padding")


@pytest.mark.integration
def test_cancellation_kills_child(tmp_path, bin_dir):
    pid_file = tmp_path / "compiler.pid"
    runner = SubprocessJobRunner(
        str(write_fake_compiler(bin_dir, FAKE_HANG)), FAKE_COMPILER_ARGS, extra_env={"PID_FILE": str(pid_file)}
    )
    cache = CacheDirectoryManager(tmp_path / "cache").shared_cache()

    async def scenario():
        with workspace(tmp_path / "jobs") as handle:
            task = asyncio.ensure_future(runner.compile(DOCUMENT, handle, cache))
            while not pid_file.exists() or not pid_file.read_text().strip():
                await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
        return handle

    handle = asyncio.run(scenario())

    pid = int(pid_file.read_text())
    with pytest.raises(ProcessLookupError):
        os.kill(pid, 0)
    assert not handle.path.exists()
