"""
Templating Context

Responsibilities:
- Represents the structured resume record (personal details, experience, projects, education, skills)
- Escapes user text for safe interpolation into LaTeX
- Renders the record into LaTeX source through the Jinja2 resume template

Owns: Resume data model, LaTeX source generation
Never: Touches the filesystem beyond reading templates, spawns processes
"""

from quill.contexts.templating.latex_escape import escape_latex, unescape_latex
from quill.contexts.templating.latex_generator import ResumeLaTeXGenerator, render
from quill.contexts.templating.resume_data_structure import (
    DateSpec,
    EducationEntry,
    ExperienceEntry,
    PersonalDetails,
    ProjectEntry,
    ResumeRecord,
    Skills,
)

__all__ = [
    # Rendering
    "render",
    "ResumeLaTeXGenerator",
    "escape_latex",
    "unescape_latex",
    # Data structure classes
    "ResumeRecord",
    "PersonalDetails",
    "ExperienceEntry",
    "ProjectEntry",
    "EducationEntry",
    "Skills",
    "DateSpec",
]
