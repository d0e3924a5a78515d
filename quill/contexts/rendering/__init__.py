"""
Rendering Context

Responsibilities:
- Compiles LaTeX to PDF with an external compiler in isolated per-job workspaces
- Bounds concurrency (FIFO admission with a bounded queue) and wall-clock time
- Supports cancellation of queued and running jobs
- Manages the shared compiler caches and reports service health

Owns: Compiler processes, workspaces, cache directories, compilation results
Never: Modifies template content
"""

from quill.contexts.rendering.admission import AdmissionController, AdmissionTicket
from quill.contexts.rendering.cache import CacheDirectoryManager
from quill.contexts.rendering.compiler import CompilationService
from quill.contexts.rendering.config import CompilerConfig, load_config
from quill.contexts.rendering.exceptions import (
    OverloadedError,
    QuillCompilationError,
    ToolMissingError,
    WorkspaceError,
)
from quill.contexts.rendering.health import HealthReporter
from quill.contexts.rendering.models import (
    CompilationJob,
    CompilationResult,
    FailureKind,
    HealthSnapshot,
    JobState,
    SharedCache,
)
from quill.contexts.rendering.runner import JobRunner, SubprocessJobRunner
from quill.contexts.rendering.workspace import WorkspaceHandle, acquire_workspace, workspace

__all__ = [
    # Job manager
    "CompilationService",
    "CompilerConfig",
    "load_config",
    # Components
    "AdmissionController",
    "AdmissionTicket",
    "CacheDirectoryManager",
    "HealthReporter",
    "JobRunner",
    "SubprocessJobRunner",
    "WorkspaceHandle",
    "acquire_workspace",
    "workspace",
    # Results
    "CompilationJob",
    "CompilationResult",
    "FailureKind",
    "HealthSnapshot",
    "JobState",
    "SharedCache",
    # Exceptions
    "QuillCompilationError",
    "ToolMissingError",
    "OverloadedError",
    "WorkspaceError",
]
