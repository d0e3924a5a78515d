"""
LaTeX Generator

Converts a structured ResumeRecord to LaTeX source text.

Rendering is pure: no filesystem writes, no subprocesses, no clock reads. The same
record always produces byte-identical output.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv
from jinja2 import Environment, FileSystemLoader, StrictUndefined, Template

from quill.contexts.templating.latex_escape import (
    escape_latex,
    escape_url,
    extract_handle,
)
from quill.contexts.templating.resume_data_structure import PersonalDetails, ResumeRecord
from quill.utils.text_processing import set_max_consecutive_blank_lines

load_dotenv()
TEMPLATE_PATH = Path(os.getenv("QUILL_TEMPLATE_PATH", str(Path(__file__).parent / "template")))
RESUME_TEMPLATE_NAME = "resume.tex.jinja"


class ResumeLaTeXGenerator:
    """
    Renders ResumeRecords through a Jinja2 template.

    Templates use custom delimiters to avoid conflicts with LaTeX syntax:
    - Variable: <<< var >>>
    - Block: <%% block %%>
    - Comment: <# comment #>

    User text reaches the template only through the `tex` and `url` filters.
    """

    def __init__(self, template_path: Optional[Path] = None, template_name: str = RESUME_TEMPLATE_NAME):
        self.template_path = Path(template_path or TEMPLATE_PATH)
        self.template_name = template_name

        self.env = Environment(
            loader=FileSystemLoader(str(self.template_path)),
            # Catches silent failures
            undefined=StrictUndefined,
            # Custom delimiters to avoid LaTeX brace conflicts
            variable_start_string="<<<",
            variable_end_string=">>>",
            block_start_string="<%%",
            block_end_string="%%>",
            comment_start_string="<#",
            comment_end_string="#>",
            # Block tags sit on their own lines and leave no residue
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            autoescape=False,
        )
        self.env.filters["tex"] = escape_latex
        self.env.filters["url"] = escape_url
        self._template: Optional[Template] = None

    @property
    def template(self) -> Template:
        if self._template is None:
            self._template = self.env.get_template(self.template_name)
        return self._template

    def _contact_items(self, personal: PersonalDetails) -> List[str]:
        """
        Build the LaTeX fragments for the contact line under the name.

        Each fragment is fully escaped here; the template joins them verbatim.
        """
        items = []
        if personal.location:
            items.append(escape_latex(personal.location))
        if personal.phone:
            items.append(escape_latex(personal.phone))
        if personal.email:
            email = escape_latex(personal.email)
            items.append(rf"\href{{mailto:{escape_url(personal.email)}}}{{\underline{{{email}}}}}")

        for url_base, raw in (("linkedin.com/in", personal.linkedin), ("github.com", personal.github)):
            handle = extract_handle(raw)
            if handle:
                target = escape_url(f"https://{url_base}/{handle}")
                label = escape_latex(f"{url_base}/{handle}")
                items.append(rf"\href{{{target}}}{{\underline{{{label}}}}}")

        if personal.website:
            label = escape_latex(personal.website.split("://", 1)[-1].rstrip("/"))
            items.append(rf"\href{{{escape_url(personal.website)}}}{{\underline{{{label}}}}}")

        return items

    @staticmethod
    def _skill_rows(record: ResumeRecord) -> List[Tuple[str, List[str]]]:
        rows = []
        if record.skills.hard:
            rows.append(("Technical Skills", record.skills.hard))
        if record.skills.soft:
            rows.append(("Soft Skills", record.skills.soft))
        return rows

    def generate_document(self, record: ResumeRecord) -> str:
        """
        Generate a complete LaTeX document.

        Sections with no included entries are omitted entirely, so an empty
        record still yields a compilable document (heading only).

        Args:
            record: Resume to render

        Returns:
            LaTeX source text
        """
        latex = self.template.render(
            personal=record.personal,
            contact_items=self._contact_items(record.personal),
            education=record.included_education(),
            experience=record.included_experience(),
            projects=record.included_projects(),
            skill_rows=self._skill_rows(record),
        )
        return set_max_consecutive_blank_lines(latex, max_consecutive=1)


@lru_cache(maxsize=1)
def _default_generator() -> ResumeLaTeXGenerator:
    return ResumeLaTeXGenerator()


def render(record: ResumeRecord) -> str:
    """Render a resume record to LaTeX source using the bundled template."""
    return _default_generator().generate_document(record)
