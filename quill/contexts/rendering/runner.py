"""
Compilation Job Runner

Runs the external LaTeX compiler for one job as a child OS process:
the source document goes in on stdin, the PDF comes out in the job's
workspace, and the shared cache directories are handed over through the
environment so repeated compilations skip package downloads.

The compiler is a black box with no cancellation hook. Cancelling the
compile() coroutine is the only way to stop it early: the runner then kills the
child's process group and reaps it before letting the cancellation propagate.
Timeouts and explicit cancellation both go through that path (see
compiler.CompilationService).

No retries happen here.
"""

import asyncio
import os
import shutil
import signal
from abc import ABC, abstractmethod
from collections import deque
from pathlib import Path
from typing import Deque, Dict, List, Optional, Sequence

from quill.contexts.rendering.config import DEFAULT_ARTIFACT_NAME, DEFAULT_COMPILER_ARGS
from quill.contexts.rendering.logger import _log_debug, _log_warning
from quill.contexts.rendering.models import CompilationResult, FailureKind, SharedCache
from quill.contexts.rendering.workspace import WorkspaceHandle
from quill.utils.pdf_processing import page_count

# Retained diagnostic output per stream; older output is dropped first
MAX_DIAGNOSTIC_BYTES = 256 * 1024
READ_CHUNK_BYTES = 4096


def resolve_binary(compiler: str) -> Optional[Path]:
    """
    Locate an executable compiler.

    Bare command names are looked up on PATH; anything containing a path
    separator must point at an executable file.

    Returns:
        Absolute path to the binary, or None if missing or not executable
    """
    if os.sep not in compiler and (os.altsep is None or os.altsep not in compiler):
        found = shutil.which(compiler)
        return Path(found).resolve() if found else None

    path = Path(compiler).expanduser()
    if path.is_file() and os.access(path, os.X_OK):
        return path.resolve()
    return None


class _TailBuffer:
    """Keeps the last max_bytes of a byte stream."""

    def __init__(self, max_bytes: int = MAX_DIAGNOSTIC_BYTES):
        self.max_bytes = max_bytes
        self._chunks: Deque[bytes] = deque()
        self._size = 0
        self.truncated = False

    def append(self, chunk: bytes) -> None:
        self._chunks.append(chunk)
        self._size += len(chunk)
        while self._size > self.max_bytes and len(self._chunks) > 1:
            self._size -= len(self._chunks.popleft())
            self.truncated = True
        if self._size > self.max_bytes:
            self.truncated = True

    def text(self) -> str:
        data = b"".join(self._chunks)[-self.max_bytes:]
        return data.decode("utf-8", errors="replace")


class JobRunner(ABC):
    """
    Capability that turns LaTeX source into PDF bytes inside a workspace.

    Implementations must resolve to a CompilationResult for every compiler
    outcome and must stop any external work when their compile() coroutine is
    cancelled.
    """

    @abstractmethod
    def binary_available(self) -> bool:
        """Whether the underlying compiler can be invoked at all."""

    @property
    def binary_description(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def compile(
        self, source_text: str, workspace: WorkspaceHandle, cache: SharedCache
    ) -> CompilationResult:
        """Compile source_text; the artifact is read from workspace.path."""


class SubprocessJobRunner(JobRunner):
    """
    Runs a Tectonic-compatible compiler as a subprocess.

    Invocation: <compiler> <args...> with "{outdir}" in args replaced by the
    workspace path. Environment: TECTONIC_CACHE_DIR and XDG_CACHE_HOME point at
    the shared caches; HOME is the workspace so incidental writes stay contained.
    """

    def __init__(
        self,
        compiler_path: str = "tectonic",
        compiler_args: Sequence[str] = DEFAULT_COMPILER_ARGS,
        artifact_name: str = DEFAULT_ARTIFACT_NAME,
        extra_env: Optional[Dict[str, str]] = None,
    ):
        self.compiler_path = compiler_path
        self.compiler_args = tuple(compiler_args)
        self.artifact_name = artifact_name
        self.extra_env = dict(extra_env or {})

    @property
    def binary_description(self) -> str:
        return self.compiler_path

    def binary_available(self) -> bool:
        return resolve_binary(self.compiler_path) is not None

    def build_command(self, binary: Path, workspace: WorkspaceHandle) -> List[str]:
        return [str(binary)] + [arg.format(outdir=workspace.path) for arg in self.compiler_args]

    def build_environment(self, workspace: WorkspaceHandle, cache: SharedCache) -> Dict[str, str]:
        env = dict(os.environ)
        env.update(
            {
                "TECTONIC_CACHE_DIR": str(cache.package_cache_dir),
                "XDG_CACHE_HOME": str(cache.aux_cache_dir),
                "HOME": str(workspace.path),
            }
        )
        env.update(self.extra_env)
        return env

    async def compile(
        self, source_text: str, workspace: WorkspaceHandle, cache: SharedCache
    ) -> CompilationResult:
        """
        Run the compiler once for this workspace.

        Returns:
            CompilationResult; failures carry TOOL_MISSING, EMPTY_INPUT,
            SPAWN_FAILURE, COMPILER_ERROR or ARTIFACT_MISSING

        Raises:
            asyncio.CancelledError: Propagated after the child has been killed and reaped
        """
        binary = resolve_binary(self.compiler_path)
        if binary is None:
            return CompilationResult.failure(
                FailureKind.TOOL_MISSING,
                f"LaTeX compiler not found or not executable: {self.compiler_path}",
            )

        if not source_text or not source_text.strip():
            return CompilationResult.failure(FailureKind.EMPTY_INPUT, "Source document is empty")

        command = self.build_command(binary, workspace)
        _log_debug(f"Spawning: {' '.join(command)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(workspace.path),
                env=self.build_environment(workspace, cache),
                # Own process group so a kill reaches anything the compiler started
                start_new_session=(os.name == "posix"),
            )
        except OSError as e:
            return CompilationResult.failure(
                FailureKind.SPAWN_FAILURE, f"Could not start compiler {binary}: {e}"
            )

        stdout = _TailBuffer()
        stderr = _TailBuffer()
        io_task = asyncio.ensure_future(
            self._communicate(process, source_text.encode("utf-8"), stdout, stderr)
        )

        try:
            returncode = await asyncio.shield(io_task)
        except asyncio.CancelledError:
            await self._terminate(process, io_task)
            raise

        source = stderr if stderr.text() else stdout
        diagnostics = source.text()
        truncated_note = ""
        if source.truncated:
            truncated_note = f" (diagnostics truncated to the last {MAX_DIAGNOSTIC_BYTES // 1024} KiB)"

        if returncode != 0:
            return CompilationResult.failure(
                FailureKind.COMPILER_ERROR,
                f"Compiler exited with code {returncode}{truncated_note}",
                diagnostics=diagnostics,
            )

        artifact_path = workspace.path / self.artifact_name
        try:
            artifact = await asyncio.to_thread(artifact_path.read_bytes)
        except FileNotFoundError:
            return CompilationResult.failure(
                FailureKind.ARTIFACT_MISSING,
                f"Compiler reported success but {self.artifact_name} was not produced",
                diagnostics=diagnostics,
            )
        except OSError as e:
            return CompilationResult.failure(
                FailureKind.ARTIFACT_MISSING,
                f"Compiler reported success but {self.artifact_name} could not be read: {e.strerror or e}",
                diagnostics=diagnostics,
            )

        pages = await asyncio.to_thread(page_count, artifact)
        return CompilationResult.ok(artifact, diagnostics=diagnostics, page_count=pages)

    async def _communicate(
        self,
        process: asyncio.subprocess.Process,
        data: bytes,
        stdout: _TailBuffer,
        stderr: _TailBuffer,
    ) -> int:
        """Feed stdin, drain both output streams, then wait for exit."""
        await asyncio.gather(
            self._write_stdin(process, data),
            self._drain(process.stdout, stdout),
            self._drain(process.stderr, stderr),
        )
        return await process.wait()

    @staticmethod
    async def _write_stdin(process: asyncio.subprocess.Process, data: bytes) -> None:
        try:
            process.stdin.write(data)
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # Compiler quit before reading everything; its exit code tells the story
            _log_debug("Compiler closed stdin early")
        finally:
            process.stdin.close()

    @staticmethod
    async def _drain(stream: asyncio.StreamReader, sink: _TailBuffer) -> None:
        while True:
            chunk = await stream.read(READ_CHUNK_BYTES)
            if not chunk:
                break
            sink.append(chunk)

    @staticmethod
    async def _terminate(process: asyncio.subprocess.Process, io_task: asyncio.Future) -> None:
        """Kill the child (and its process group), abort pending I/O, and reap it."""
        if process.returncode is None:
            try:
                if os.name == "posix":
                    os.killpg(process.pid, signal.SIGKILL)
                else:
                    process.kill()
            except ProcessLookupError:
                pass
            _log_warning(f"Killed compiler process {process.pid}")

        io_task.cancel()
        try:
            await io_task
        except asyncio.CancelledError:
            pass
        except OSError as e:
            _log_debug(f"Compiler I/O ended with {e!r} after kill")

        await process.wait()
