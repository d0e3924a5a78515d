"""Shared fixtures: fake compilers, isolated configs and deterministic runners."""

import asyncio
import stat
from pathlib import Path
from typing import List

import pytest

from quill.contexts.rendering.config import CompilerConfig
from quill.contexts.rendering.models import CompilationResult
from quill.contexts.rendering.runner import JobRunner

# Fake compilers receive the workspace as their only argument ($1)
FAKE_COMPILER_ARGS = ("{outdir}",)

FAKE_SUCCESS = """#!/bin/sh
cat > /dev/null
printf '%%PDF-1.4 fake' > "$1/texput.pdf"
echo "note: wrote texput.pdf"
exit 0
"""

FAKE_COMPILER_ERROR = """#!/bin/sh
cat > /dev/null
echo "error: $1/texput.tex:3: Undefined control sequence" >&2
exit 1
"""

FAKE_NO_ARTIFACT = """#!/bin/sh
cat > /dev/null
echo "warning: nothing to do"
exit 0
"""

# Exits cleanly but leaves a directory where the PDF should be
FAKE_UNREADABLE_ARTIFACT = """#!/bin/sh
cat > /dev/null
mkdir "$1/texput.pdf"
exit 0
"""

# Records its pid (outside the workspace) and then blocks
FAKE_HANG = """#!/bin/sh
cat > /dev/null
echo $$ > "$PID_FILE"
exec sleep 30
"""


def write_fake_compiler(directory: Path, body: str, name: str = "fake-tectonic") -> Path:
    """Write an executable shell script standing in for the LaTeX compiler."""
    path = directory / name
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


class SleepyRunner(JobRunner):
    """JobRunner that sleeps instead of compiling and tracks its own concurrency."""

    def __init__(self, delay: float = 0.05, result: CompilationResult = None):
        self.delay = delay
        self.result = result or CompilationResult.ok(b"%PDF-1.4 sleepy")
        self.running = 0
        self.peak = 0
        self.calls = 0
        self.workspaces: List[Path] = []
        self.cancelled = 0

    def binary_available(self) -> bool:
        return True

    async def compile(self, source_text, workspace, cache):
        self.calls += 1
        self.running += 1
        self.peak = max(self.peak, self.running)
        self.workspaces.append(workspace.path)
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.running -= 1
        return self.result


@pytest.fixture
def make_config(tmp_path):
    """Build a CompilerConfig whose directories all live under tmp_path."""

    def _make(**overrides) -> CompilerConfig:
        values = {
            "compiler_path": str(tmp_path / "bin" / "fake-tectonic"),
            "compiler_args": FAKE_COMPILER_ARGS,
            "cache_root": tmp_path / "cache",
            "tmp_root": tmp_path / "jobs",
            "logs_path": tmp_path / "logs",
        }
        values.update(overrides)
        return CompilerConfig(**values)

    return _make


@pytest.fixture
def bin_dir(tmp_path) -> Path:
    path = tmp_path / "bin"
    path.mkdir()
    return path


@pytest.fixture
def sample_resume_dict():
    return {
        "personal": {
            "name": "Philip J. Fry",
            "email": "fry@planetexpress.com",
            "phone": "555-0100",
            "location": "New New York, NY",
            "linkedin": "https://linkedin.com/in/pjfry/",
            "github": "https://github.com/pjfry",
        },
        "experience": [
            {
                "title": "Delivery Boy",
                "companyName": "Planet Express",
                "location": "New New York, NY",
                "startDate": {"month": "Dec", "year": "2999"},
                "endDate": {"isPresent": True},
                "bulletPoints": [
                    {"text": "Delivered 100% of packages on time & intact"},
                    "Cut fuel costs by $1,000 per_trip",
                ],
            },
            {
                "title": "Pizza Delivery",
                "company_name": "Panucci's Pizza",
                "start_date": {"month": "Jan", "year": "1999"},
                "end_date": {"month": "Dec", "year": "1999"},
                "bullets": ["Delivered pizza to #1 customers"],
            },
        ],
        "projects": [
            {
                "title": "Slurm Tracker",
                "technologies": ["Python", "C#"],
                "link": "https://example.com/slurm?q=1#top",
                "bullets": ["Tracked consumption"],
            }
        ],
        "education": [
            {
                "institution": "Mars University",
                "degree": "B.S. Delivery Science",
                "degreeStatus": "in-progress",
                "endDate": {"month": "May", "year": "3001"},
            }
        ],
        "skills": {"hardSkills": {"skills": ["Python", "LaTeX"]}, "soft": ["Teamwork"]},
    }
