"""
Rendering context logger.

Provides logging interface for rendering context with automatic [render] prefix.
All rendering modules should import from this module, not from utils.logger directly.
"""

from pathlib import Path

from loguru import logger

from quill.utils.logger import setup_logger as _setup_logger

CONTEXT_PREFIX = "[render]"


def setup_rendering_logger(log_dir: Path, compiler: str, console: bool = True) -> Path:
    """
    Setup logger for rendering context.

    Configures loguru with provenance tracking and rendering-specific context.

    Args:
        log_dir: Directory for this rendering session
        compiler: Compiler command or path, recorded in the provenance header
        console: Also log INFO and above to stdout

    Returns:
        Path to log file

    Example:
        from quill.contexts.rendering.logger import setup_rendering_logger, _log_info

        log_file = setup_rendering_logger(log_dir, compiler="tectonic")
        _log_info("Starting compilation...")
    """
    return _setup_logger(
        context_name="render",
        log_dir=log_dir,
        extra_provenance={"LaTeX compiler": compiler},
        console=console,
    )


# Wrapper functions with automatic [render] prefix


def _log_info(message: str) -> None:
    """Log info message with [render] prefix."""
    logger.info(f"{CONTEXT_PREFIX} {message}")


def _log_success(message: str) -> None:
    """Log success message with [render] prefix."""
    logger.success(f"{CONTEXT_PREFIX} {message}")


def _log_error(message: str) -> None:
    """Log error message with [render] prefix."""
    logger.error(f"{CONTEXT_PREFIX} {message}")


def _log_warning(message: str) -> None:
    """Log warning message with [render] prefix."""
    logger.warning(f"{CONTEXT_PREFIX} {message}")


def _log_debug(message: str) -> None:
    """Log debug message with [render] prefix."""
    logger.debug(f"{CONTEXT_PREFIX} {message}")


# High-level rendering-specific logging helpers


def log_job_start(job_id: str, workspace: Path, active: int, limit: int) -> None:
    """Log start of a compilation job with context."""
    _log_info(f"Starting job {job_id} ({active}/{limit} slots in use)")
    _log_debug(f"  Workspace: {workspace}")


def log_job_result(
    job_id: str,
    result,  # CompilationResult
    elapsed_time: float,
    verbose: bool = False,
) -> None:
    """
    Log compilation result with diagnostics.

    Args:
        job_id: Job identifier
        result: CompilationResult from the job manager
        elapsed_time: Seconds from submission to result
        verbose: Dump compiler diagnostics even on success (default: False)
    """
    if result.success:
        pages = f", {result.page_count} page(s)" if result.page_count else ""
        _log_success(f"{job_id}: compilation succeeded ({elapsed_time:.2f}s{pages})")
        _log_debug(f"  PDF: {len(result.artifact)} bytes")
    elif result.retryable:
        _log_warning(f"{job_id}: {result.failure_kind.value} ({elapsed_time:.2f}s) - {result.message}")
    else:
        _log_error(f"{job_id}: {result.failure_kind.value} ({elapsed_time:.2f}s) - {result.message}")

    # Use opt(raw=True) to bypass format template and preserve compiler output formatting
    if result.diagnostics and (verbose or not result.success):
        logger.opt(raw=True).debug(
            f"\n{'=' * 80}\nCOMPILER DIAGNOSTICS ({job_id}):\n{'=' * 80}\n{result.diagnostics}\n"
        )
