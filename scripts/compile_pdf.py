#!/usr/bin/env python3
"""
PDF Compilation and Cache Maintenance CLI

Compiles structured YAML resumes to PDF through the rendering context and
exposes the operator actions for the compiler cache.

Commands:
    compile     - Render a YAML resume and compile it to PDF
    health      - Show compiler and cache status
    clear-cache - Delete and recreate the compiler cache directories
    warm-cache  - Populate the compiler cache with a sample compilation

Examples:\n

    compile_pdf.py compile data/resume.yaml                   # Writes data/resume.pdf

    compile_pdf.py compile data/resume.yaml -o out/cv.pdf     # Explicit output path

    compile_pdf.py compile data/resume.yaml --tex-only        # Write LaTeX source only

    compile_pdf.py health --json                              # Machine-readable status

    compile_pdf.py clear-cache --yes                          # No confirmation prompt
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from typing_extensions import Annotated

from quill.contexts.rendering import CompilationService, ToolMissingError, load_config
from quill.contexts.rendering.logger import setup_rendering_logger
from quill.contexts.templating import ResumeRecord, render
from quill.utils.timestamp import now

load_dotenv()

app = typer.Typer(
    help="Compile YAML resumes to PDF and maintain the LaTeX compiler cache",
    add_completion=False,
    invoke_without_command=True,
)


@app.callback()
def main(ctx: typer.Context):
    """Show help by default when no command is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _build_service(timeout: Optional[float] = None, verbose: bool = False) -> CompilationService:
    overrides = {"timeout_s": timeout} if timeout else {}
    try:
        config = load_config(**overrides)
    except ValueError as e:
        typer.secho(f"Configuration error: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    log_file = setup_rendering_logger(
        config.logs_path / f"render_{now()}", compiler=config.compiler_path, console=verbose
    )
    typer.echo(f"Log: {log_file}")
    return CompilationService(config=config)


@app.command("compile")
def compile_command(
    resume_file: Annotated[
        Path,
        typer.Argument(help="Structured resume YAML", exists=True, dir_okay=False, readable=True),
    ],
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="PDF output path (default: next to the YAML file)"),
    ] = None,
    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", "-t", help="Compilation time limit in seconds", min=1),
    ] = None,
    tex_only: Annotated[
        bool,
        typer.Option("--tex-only", help="Write the generated LaTeX source instead of compiling"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show rendering log output on the console"),
    ] = False,
):
    """
    Render a structured YAML resume and compile it to PDF.

    Examples:\n

        $ compile_pdf.py compile data/resume.yaml                 # Compile resume

        $ compile_pdf.py compile data/resume.yaml --verbose       # Verbose output

        $ compile_pdf.py compile data/resume.yaml -t 120          # Allow two minutes
    """
    typer.secho(f"\nCompiling: {resume_file}", fg=typer.colors.BLUE, bold=True)

    try:
        record = ResumeRecord.from_yaml(resume_file)
    except (ValueError, TypeError) as e:
        typer.secho(f"Error: could not load resume: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    if tex_only:
        tex_path = output or resume_file.with_suffix(".tex")
        tex_path.write_text(render(record), encoding="utf-8")
        typer.secho(f"✓ Wrote LaTeX source: {tex_path}\n", fg=typer.colors.GREEN)
        raise typer.Exit(code=0)

    service = _build_service(timeout=timeout, verbose=verbose)
    result = asyncio.run(service.compile_resume(record))

    typer.echo("")
    if result.success:
        pdf_path = output or resume_file.with_suffix(".pdf")
        pdf_path.parent.mkdir(parents=True, exist_ok=True)
        pdf_path.write_bytes(result.artifact)

        typer.secho("✓ Compilation succeeded", fg=typer.colors.GREEN, bold=True)
        typer.echo(f"  Time: {result.elapsed_s:.2f}s")
        if result.page_count:
            typer.echo(f"  Pages: {result.page_count}")
        typer.echo(f"  PDF: {pdf_path}")
    else:
        error = service.error_payload(result)
        typer.secho(f"✗ Compilation failed: {error['kind']}", fg=typer.colors.RED, bold=True)
        typer.secho(f"  {error['message']}", fg=typer.colors.RED)
        if error["retryable"]:
            typer.echo("  This failure is transient; retrying may succeed.")
        if error["detail"]:
            typer.echo("\nCompiler output (tail):")
            typer.echo(error["detail"])
    typer.echo("")

    raise typer.Exit(code=0 if result.success else 1)


@app.command("health")
def health_command(
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the health snapshot as JSON"),
    ] = False,
):
    """
    Show compiler availability, cache sizes and recommendations.

    Exits with code 1 when the compiler binary is missing.
    """
    config = load_config()
    service = CompilationService(config=config)
    snapshot = asyncio.run(service.health())

    if as_json:
        typer.echo(json.dumps(snapshot.to_dict(), indent=2))
        raise typer.Exit(code=0 if snapshot.binary_present else 1)

    color = typer.colors.GREEN if snapshot.binary_present else typer.colors.RED
    typer.secho(f"\nStatus: {snapshot.status}", fg=color, bold=True)
    typer.echo(f"  Compiler: {snapshot.binary_path} ({'found' if snapshot.binary_present else 'missing'})")

    typer.secho("\nCache directories:", bold=True)
    for directory in snapshot.directories:
        state = f"{directory.size_mb:.2f} MB" if directory.exists else "missing"
        typer.echo(f"  {directory.name:15} {state:>12}  {directory.path}")

    if snapshot.recommendations:
        typer.secho("\nRecommendations:", fg=typer.colors.YELLOW, bold=True)
        for recommendation in snapshot.recommendations:
            typer.echo(f"  - {recommendation}")
    typer.echo("")

    raise typer.Exit(code=0 if snapshot.binary_present else 1)


@app.command("clear-cache")
def clear_cache_command(
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip the confirmation prompt"),
    ] = False,
):
    """
    Delete and recreate the compiler cache directories.

    The next compilation re-downloads every package it needs.
    """
    service = CompilationService(config=load_config())
    cache_dirs = ", ".join(str(path) for path in service.cache_manager.directories().values())

    if not yes:
        typer.confirm(f"Delete compiler cache ({cache_dirs})?", abort=True)

    results = asyncio.run(service.clear_cache())

    failed = [r for r in results if not r["success"]]
    for r in results:
        if r["success"]:
            typer.secho(f"✓ Cleared {r['directory']}", fg=typer.colors.GREEN)
        else:
            typer.secho(f"✗ {r['directory']}: {r['error']}", fg=typer.colors.RED)
    typer.echo("")

    raise typer.Exit(code=1 if failed else 0)


@app.command("warm-cache")
def warm_cache_command(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show rendering log output on the console"),
    ] = False,
):
    """
    Compile a sample resume so the compiler cache holds every template package.

    Run once after deployment; the first real compilation is then fast.
    """
    service = _build_service(verbose=verbose)
    try:
        service.ensure_ready()
    except ToolMissingError as e:
        typer.secho(f"Error: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    typer.secho("\nWarming compiler cache...", fg=typer.colors.BLUE, bold=True)
    result = asyncio.run(service.warm_cache())

    if result.success:
        typer.secho(f"✓ Cache warmed in {result.elapsed_s:.1f}s\n", fg=typer.colors.GREEN, bold=True)
        raise typer.Exit(code=0)

    error = service.error_payload(result)
    typer.secho(f"✗ Warm-up failed: {error['kind']} - {error['message']}", fg=typer.colors.RED, bold=True)
    if error["detail"]:
        typer.echo(error["detail"])
    typer.echo("")
    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
