"""
Rendering context data model.

Typed results and job records shared by the runner, the admission controller,
the health reporter and the job manager.
"""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from quill.utils.text_processing import sanitize_excerpt

BYTES_PER_MB = 1024 * 1024


class FailureKind(str, Enum):
    TOOL_MISSING = "tool_missing"
    EMPTY_INPUT = "empty_input"
    SPAWN_FAILURE = "spawn_failure"
    COMPILER_ERROR = "compiler_error"
    ARTIFACT_MISSING = "artifact_missing"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    OVERLOADED = "overloaded"
    WORKSPACE_ERROR = "workspace_error"


# Failures a caller may reasonably retry as-is
RETRYABLE_KINDS = frozenset({FailureKind.OVERLOADED, FailureKind.TIMEOUT})


class JobState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED)


@dataclass(frozen=True)
class SharedCache:
    """Persistent compiler cache directories shared by every job."""

    package_cache_dir: Path
    aux_cache_dir: Path

    def directories(self) -> List[Path]:
        return [self.package_cache_dir, self.aux_cache_dir]


@dataclass(frozen=True)
class CompilationResult:
    """
    Outcome of one compilation.

    Attributes:
        success: Whether a PDF was produced
        artifact: PDF bytes (None on failure)
        failure_kind: FailureKind on failure, None on success
        message: Short human-readable summary
        diagnostics: Raw compiler diagnostic output (may be empty)
        page_count: Pages in the PDF, when it could be read
        job_id: Job that produced this result (set by the job manager)
        elapsed_s: Wall-clock seconds from submission to result
    """

    success: bool
    artifact: Optional[bytes] = field(default=None, repr=False)
    failure_kind: Optional[FailureKind] = None
    message: str = ""
    diagnostics: str = field(default="", repr=False)
    page_count: Optional[int] = None
    job_id: Optional[str] = None
    elapsed_s: Optional[float] = None

    @classmethod
    def ok(cls, artifact: bytes, diagnostics: str = "", page_count: Optional[int] = None) -> "CompilationResult":
        return cls(
            success=True,
            artifact=artifact,
            message="Compilation succeeded",
            diagnostics=diagnostics,
            page_count=page_count,
        )

    @classmethod
    def failure(cls, kind: FailureKind, message: str, diagnostics: str = "") -> "CompilationResult":
        return cls(success=False, failure_kind=kind, message=message, diagnostics=diagnostics)

    @property
    def retryable(self) -> bool:
        return self.failure_kind in RETRYABLE_KINDS

    def with_job(self, job_id: str, elapsed_s: float) -> "CompilationResult":
        return dataclasses.replace(self, job_id=job_id, elapsed_s=elapsed_s)

    def to_error_dict(self, max_detail_chars: int = 1000, redact_paths: Optional[Iterable[Path]] = None) -> Dict[str, Any]:
        """
        Small structured error safe to hand to untrusted callers.

        The diagnostic detail is a bounded, sanitized excerpt with the given
        paths redacted.
        """
        if self.success:
            raise ValueError("Successful results have no error payload")
        return {
            "kind": self.failure_kind.value,
            "message": self.message,
            "detail": sanitize_excerpt(self.diagnostics, max_detail_chars, redact_paths),
            "retryable": self.retryable,
        }


@dataclass
class CompilationJob:
    """
    One compilation request tracked by the job manager.

    Lifecycle: QUEUED -> RUNNING -> SUCCEEDED | FAILED | CANCELLED.
    The workspace is removed on every terminal state.
    """

    job_id: str
    source_text: str = field(repr=False)
    submitted_at: str
    state: JobState = JobState.QUEUED
    workspace_path: Optional[Path] = None
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    failure_kind: Optional[FailureKind] = None


@dataclass(frozen=True)
class DirectoryStatus:
    name: str
    path: Path
    exists: bool
    size_bytes: int

    @property
    def size_mb(self) -> float:
        return round(self.size_bytes / BYTES_PER_MB, 2)


@dataclass(frozen=True)
class HealthSnapshot:
    """Operational status, recomputed on every request and never persisted."""

    binary_present: bool
    binary_path: str
    directories: List[DirectoryStatus]
    recommendations: List[str]
    timestamp: str

    @property
    def total_size_bytes(self) -> int:
        return sum(d.size_bytes for d in self.directories)

    @property
    def status(self) -> str:
        return "healthy" if self.binary_present else "degraded"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "binary": {"present": self.binary_present, "path": self.binary_path},
            "cache": {
                d.name: {"path": str(d.path), "exists": d.exists, "size_bytes": d.size_bytes, "size_mb": d.size_mb}
                for d in self.directories
            },
            "total_size_bytes": self.total_size_bytes,
            "total_size_mb": round(self.total_size_bytes / BYTES_PER_MB, 2),
            "recommendations": list(self.recommendations),
        }
