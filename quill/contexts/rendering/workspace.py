"""
Per-job workspace lifecycle.

Every compilation gets its own directory, {tmp_root}/job-{uuid}/, which is the
compiler's output directory and HOME. Nothing else writes there, and it is
removed on every exit path.

Usage:
    with workspace(tmp_root) as handle:
        run_compiler(outdir=handle.path)
    # directory is gone here, whatever happened inside
"""

import shutil
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from quill.contexts.rendering.exceptions import WorkspaceError
from quill.contexts.rendering.logger import _log_debug, _log_warning

WORKSPACE_PREFIX = "job-"


class WorkspaceHandle:
    """Exclusive ownership of one job directory. Release is effective once."""

    def __init__(self, path: Path):
        self.path = path
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """
        Recursively delete the workspace.

        Deletion errors are logged, never raised: cleanup is best-effort and
        must not mask the job's real outcome.
        """
        if self._released:
            _log_debug(f"Workspace already released: {self.path}")
            return
        self._released = True

        try:
            shutil.rmtree(self.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            _log_warning(f"Failed to remove workspace {self.path}: {e}")
        else:
            _log_debug(f"Removed workspace {self.path}")

    def __enter__(self) -> "WorkspaceHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"WorkspaceHandle({self.path!s}, released={self._released})"


def acquire_workspace(tmp_root: Path) -> WorkspaceHandle:
    """
    Create a fresh, uniquely named workspace under tmp_root.

    Names come from uuid4, so concurrent callers never collide; an existing
    directory with the same name is treated as an error rather than reused.

    Raises:
        WorkspaceError: If tmp_root or the workspace cannot be created
    """
    path = Path(tmp_root) / f"{WORKSPACE_PREFIX}{uuid.uuid4().hex}"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.mkdir(mode=0o700)
    except OSError as e:
        raise WorkspaceError(path, e) from e

    _log_debug(f"Created workspace {path}")
    return WorkspaceHandle(path)


@contextmanager
def workspace(tmp_root: Path) -> Iterator[WorkspaceHandle]:
    """Acquire a workspace and release it on every exit path, including errors and cancellation."""
    handle = acquire_workspace(tmp_root)
    try:
        yield handle
    finally:
        handle.release()
