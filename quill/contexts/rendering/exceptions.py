"""Custom exceptions for the rendering context, each tied to a FailureKind."""

from pathlib import Path
from typing import Optional

from quill.contexts.rendering.models import FailureKind


class QuillCompilationError(Exception):
    """
    Base class for rendering failures raised inside the package.

    The job manager converts these into CompilationResult failures; they only
    escape to callers from startup checks (ensure_ready).

    Attributes:
        message: Error description
        kind: FailureKind this error maps to
    """

    kind: FailureKind = FailureKind.COMPILER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ToolMissingError(QuillCompilationError):
    """
    Raised when the compiler binary is absent or not executable.

    Fatal for the whole service instance, not just one job.

    Attributes:
        binary_path: Configured compiler path or command name
    """

    kind = FailureKind.TOOL_MISSING

    def __init__(self, binary_path: str):
        self.binary_path = binary_path
        super().__init__(
            f"LaTeX compiler not found or not executable: {binary_path}\n"
            "Install Tectonic or set LATEX_COMPILER to its path."
        )


class OverloadedError(QuillCompilationError):
    """
    Raised by admission control when every slot is busy and the queue is full.

    Attributes:
        active: Jobs holding a slot at rejection time
        queued: Jobs waiting at rejection time
    """

    kind = FailureKind.OVERLOADED

    def __init__(self, active: int, queued: int):
        self.active = active
        self.queued = queued
        super().__init__(
            f"Compilation capacity exhausted ({active} running, {queued} queued). Retry later."
        )


class WorkspaceError(QuillCompilationError):
    """
    Raised when a per-job workspace cannot be created.

    Attributes:
        path: Workspace (or its parent) that failed
        original_error: The underlying OSError
    """

    kind = FailureKind.WORKSPACE_ERROR

    def __init__(self, path: Path, original_error: Optional[Exception] = None):
        self.path = path
        self.original_error = original_error

        parts = [f"Could not create workspace: {path}"]
        if original_error:
            parts.append(f"Original error: {original_error}")

        super().__init__("\n".join(parts))
