"""
Compilation Job Manager

Turns LaTeX source (or a ResumeRecord) into PDF bytes through the external
compiler, enforcing the service's resource rules:

    tool check -> input check -> admission (FIFO, bounded) -> workspace
    -> runner (bounded by timeout, cancellable) -> workspace released
    -> ticket released -> CompilationResult

Every failure comes back as a typed CompilationResult; only workspace cleanup
errors are swallowed (and logged). Job lifecycle is logged to loguru (Tier 1)
and to the JSON Lines compile event log (Tier 2).

The shared cache directories are not locked. With the default concurrency
limit of 1 the admission controller is the de facto lock; raise the limit only
once the compiler's concurrent cache access is known to be safe.
"""

import asyncio
import contextlib
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from quill.contexts.rendering.admission import AdmissionController, AdmissionTicket
from quill.contexts.rendering.cache import CacheDirectoryManager
from quill.contexts.rendering.config import CompilerConfig, load_config
from quill.contexts.rendering.exceptions import OverloadedError, ToolMissingError, WorkspaceError
from quill.contexts.rendering.health import HealthReporter
from quill.contexts.rendering.logger import _log_debug, _log_error, _log_info, log_job_result, log_job_start
from quill.contexts.rendering.models import (
    CompilationJob,
    CompilationResult,
    FailureKind,
    HealthSnapshot,
    JobState,
)
from quill.contexts.rendering.runner import JobRunner, SubprocessJobRunner
from quill.contexts.rendering.workspace import workspace
from quill.contexts.templating import ResumeRecord, render
from quill.utils.event_logging import log_job_event
from quill.utils.timestamp import now_exact

EVENT_SOURCE = "rendering"

# Timeout for cache warm-up, which may download every package the template uses
WARMUP_TIMEOUT_S = 300.0

# Exercises every package and construct of the resume template
WARMUP_RESUME = {
    "personal": {
        "name": "Sample Resume",
        "email": "sample@example.com",
        "location": "San Francisco, CA",
        "linkedin": "https://linkedin.com/in/sample",
        "github": "https://github.com/sample",
    },
    "education": [
        {
            "institution": "Sample University",
            "degree": "Bachelor of Science in Computer Science",
            "degree_status": "completed",
            "location": "Berkeley, CA",
            "end_date": {"month": "May", "year": "2020"},
        }
    ],
    "experience": [
        {
            "title": "Software Engineer",
            "company_name": "Tech Company",
            "location": "San Francisco, CA",
            "start_date": {"month": "Jan", "year": "2023"},
            "end_date": {"is_present": True},
            "bullets": [
                "Developed applications using modern technologies",
                "Collaborated with cross-functional teams",
            ],
        }
    ],
    "projects": [
        {
            "title": "Sample Project",
            "technologies": ["React", "TypeScript", "Node.js"],
            "link": "https://example.com/project",
            "start_date": {"month": "Jan", "year": "2023"},
            "end_date": {"month": "Mar", "year": "2023"},
            "bullets": ["Built a full-stack application"],
        }
    ],
    "skills": {"hard": ["Python", "LaTeX"], "soft": ["Communication"]},
}


class CompilationService:
    """
    Bounded, observable job manager around the external LaTeX compiler.

    Args:
        config: Service configuration (default: load_config())
        runner: JobRunner to use (default: SubprocessJobRunner built from config)
        admission: Admission controller (default: built from config limits)

    Example:
        service = CompilationService()
        service.ensure_ready()
        result = await service.compile_resume(ResumeRecord.from_dict(payload))
        if result.success:
            pdf_bytes = result.artifact
        else:
            error = service.error_payload(result)
    """

    def __init__(
        self,
        config: Optional[CompilerConfig] = None,
        runner: Optional[JobRunner] = None,
        admission: Optional[AdmissionController] = None,
    ):
        self.config = config or load_config()
        self.cache_manager = CacheDirectoryManager(self.config.cache_root)
        self.runner = runner or SubprocessJobRunner(
            compiler_path=self.config.compiler_path,
            compiler_args=self.config.compiler_args,
            artifact_name=self.config.artifact_name,
        )
        self.admission = admission or AdmissionController(
            max_concurrent=self.config.max_concurrent,
            max_queue=self.config.max_queue,
        )
        self.health_reporter = HealthReporter(
            cache_manager=self.cache_manager,
            runner=self.runner,
            cache_warn_mb=self.config.cache_warn_mb,
        )
        self._jobs: Dict[str, CompilationJob] = {}
        self._cancel_events: Dict[str, asyncio.Event] = {}

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def ensure_ready(self) -> None:
        """
        Startup check: the compiler must exist and the cache directories are created.

        Raises:
            ToolMissingError: If the compiler binary is unavailable (fatal for this instance)
        """
        if not self.runner.binary_available():
            raise ToolMissingError(self.runner.binary_description)
        self.cache_manager.ensure_directories()
        _log_info(f"Compilation service ready ({self.config.max_concurrent} slot(s), queue {self.config.max_queue})")

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    async def compile_resume(
        self,
        record: ResumeRecord,
        cancel_event: Optional[asyncio.Event] = None,
        timeout_s: Optional[float] = None,
    ) -> CompilationResult:
        """Render a resume record and compile it to PDF."""
        return await self.compile_source(render(record), cancel_event=cancel_event, timeout_s=timeout_s)

    async def compile_source(
        self,
        source_text: str,
        cancel_event: Optional[asyncio.Event] = None,
        timeout_s: Optional[float] = None,
        job_id: Optional[str] = None,
    ) -> CompilationResult:
        """
        Compile LaTeX source to PDF under the service's concurrency and time limits.

        Args:
            source_text: Complete LaTeX document
            cancel_event: Set it to abort the job (queued or running); result is CANCELLED
            timeout_s: Wall-clock limit for the compiler run (default: config.timeout_s)
            job_id: Caller-chosen identifier (default: random uuid4 hex)

        Returns:
            CompilationResult with the PDF bytes or a typed failure
        """
        job = CompilationJob(
            job_id=job_id or uuid.uuid4().hex,
            source_text=source_text or "",
            submitted_at=now_exact(),
        )
        started = time.monotonic()

        # Checked before admission: no ticket, no workspace, no subprocess
        if not self.runner.binary_available():
            return self._finish(
                job,
                CompilationResult.failure(
                    FailureKind.TOOL_MISSING,
                    f"LaTeX compiler not found or not executable: {self.runner.binary_description}",
                ),
                started,
            )
        if not job.source_text.strip():
            return self._finish(
                job, CompilationResult.failure(FailureKind.EMPTY_INPUT, "Source document is empty"), started
            )

        cancel_event = cancel_event or asyncio.Event()
        self._jobs[job.job_id] = job
        self._cancel_events[job.job_id] = cancel_event
        self._record(job, "job_queued", active=self.admission.active, queued=self.admission.queued)

        try:
            try:
                ticket = await self._admit(cancel_event)
            except OverloadedError as e:
                self._record(job, "job_rejected", active=e.active, queued=e.queued)
                return self._finish(job, CompilationResult.failure(FailureKind.OVERLOADED, e.message), started)

            if ticket is None:
                return self._finish(
                    job, CompilationResult.failure(FailureKind.CANCELLED, "Cancelled while queued"), started
                )

            try:
                result = await self._run_admitted(job, cancel_event, timeout_s or self.config.timeout_s)
            except Exception as e:
                _log_error(f"Runner failed for {job.job_id}: {e!r}")
                result = CompilationResult.failure(FailureKind.COMPILER_ERROR, f"Compiler runner failed: {e!r}")
            finally:
                ticket.release()

            return self._finish(job, result, started)
        except asyncio.CancelledError:
            self._finish(job, CompilationResult.failure(FailureKind.CANCELLED, "Compilation task cancelled"), started)
            raise
        finally:
            self._jobs.pop(job.job_id, None)
            self._cancel_events.pop(job.job_id, None)

    async def _admit(self, cancel_event: asyncio.Event) -> Optional[AdmissionTicket]:
        """Wait for a slot or for cancellation, whichever comes first (None if cancelled)."""
        if cancel_event.is_set():
            return None

        admit_task = asyncio.ensure_future(self.admission.admit())
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _pending = await asyncio.wait({admit_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            admit_task.cancel()
            raise
        finally:
            cancel_task.cancel()

        if admit_task in done:
            # Raises OverloadedError when rejected
            return admit_task.result()

        admit_task.cancel()
        try:
            ticket = await admit_task
        except asyncio.CancelledError:
            if not admit_task.cancelled():
                raise
            return None
        # Admitted in the same instant as the cancellation
        ticket.release()
        return None

    async def _run_admitted(self, job: CompilationJob, cancel_event: asyncio.Event, timeout_s: float) -> CompilationResult:
        """Run the compiler for an admitted job inside its own workspace."""
        job.state = JobState.RUNNING
        job.started_at = now_exact()

        try:
            with workspace(self.config.tmp_root) as handle:
                job.workspace_path = handle.path
                log_job_start(job.job_id, handle.path, self.admission.active, self.admission.max_concurrent)
                self._record(job, "job_started", workspace=str(handle.path))

                return await self._run_bounded(
                    self.runner.compile(job.source_text, handle, self.cache_manager.shared_cache()),
                    cancel_event,
                    timeout_s,
                )
        except WorkspaceError as e:
            return CompilationResult.failure(FailureKind.WORKSPACE_ERROR, e.message)

    @staticmethod
    async def _run_bounded(compile_coro, cancel_event: asyncio.Event, timeout_s: float) -> CompilationResult:
        """
        Await the runner, stopping it on cancellation or timeout.

        Both stop paths cancel the runner coroutine, which kills the child
        process before this returns.
        """
        compile_task = asyncio.ensure_future(compile_coro)
        cancel_task = asyncio.ensure_future(cancel_event.wait())

        async def _stop() -> None:
            compile_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await compile_task

        try:
            done, _pending = await asyncio.wait(
                {compile_task, cancel_task}, timeout=timeout_s, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            await _stop()
            raise
        finally:
            cancel_task.cancel()

        if compile_task in done:
            return compile_task.result()

        await _stop()
        if cancel_event.is_set():
            return CompilationResult.failure(FailureKind.CANCELLED, "Compilation cancelled")
        return CompilationResult.failure(FailureKind.TIMEOUT, f"Compilation exceeded {timeout_s:g}s")

    def _finish(self, job: CompilationJob, result: CompilationResult, started: float) -> CompilationResult:
        elapsed = time.monotonic() - started
        result = result.with_job(job.job_id, round(elapsed, 3))

        if result.success:
            job.state = JobState.SUCCEEDED
        elif result.failure_kind == FailureKind.CANCELLED:
            job.state = JobState.CANCELLED
        else:
            job.state = JobState.FAILED
        job.failure_kind = result.failure_kind
        job.finished_at = now_exact()

        log_job_result(job.job_id, result, elapsed)
        self._record(
            job,
            "job_finished",
            state=job.state.value,
            failure_kind=result.failure_kind.value if result.failure_kind else None,
            elapsed_s=round(elapsed, 2),
            artifact_bytes=len(result.artifact) if result.artifact else None,
            page_count=result.page_count,
            message=None if result.success else result.message,
        )
        return result

    def _record(self, job: CompilationJob, event_type: str, **fields: Any) -> None:
        log_job_event(event_type, job.job_id, EVENT_SOURCE, events_file=self.config.events_file, **fields)

    # ------------------------------------------------------------------
    # Job control
    # ------------------------------------------------------------------

    def cancel(self, job_id: str) -> bool:
        """Raise the cancellation signal for a queued or running job. False if unknown or finished."""
        cancel_event = self._cancel_events.get(job_id)
        if cancel_event is None:
            return False
        _log_debug(f"Cancellation requested for {job_id}")
        cancel_event.set()
        return True

    def active_jobs(self) -> List[CompilationJob]:
        """Jobs currently queued or running."""
        return list(self._jobs.values())

    def error_payload(self, result: CompilationResult) -> Dict[str, Any]:
        """Caller-safe {kind, message, detail, retryable} for a failed result."""
        return result.to_error_dict(
            max_detail_chars=self.config.excerpt_chars,
            redact_paths=[self.config.tmp_root, self.config.cache_root, Path.home()],
        )

    # ------------------------------------------------------------------
    # Cache and health
    # ------------------------------------------------------------------

    async def warm_cache(self, timeout_s: float = WARMUP_TIMEOUT_S) -> CompilationResult:
        """
        Populate the shared cache by compiling a sample resume.

        The sample uses the same template as real jobs, so every package they
        need is downloaded once here instead of during a user's first request.
        """
        await asyncio.to_thread(self.cache_manager.ensure_directories)
        _log_info("Warming compiler cache with sample resume")
        return await self.compile_resume(ResumeRecord.from_dict(WARMUP_RESUME), timeout_s=timeout_s)

    async def health(self) -> HealthSnapshot:
        return await asyncio.to_thread(self.health_reporter.snapshot)

    async def clear_cache(self) -> List[Dict]:
        """Destructive cache reset (operator action)."""
        results = await asyncio.to_thread(self.health_reporter.clear_cache)
        log_job_event(
            "cache_cleared",
            None,
            EVENT_SOURCE,
            events_file=self.config.events_file,
            details=results,
            running_jobs=self.admission.active,
        )
        return results
