"""Unit tests for resume rendering (ResumeRecord -> LaTeX source)."""

import pytest

from quill.contexts.templating import ResumeLaTeXGenerator, ResumeRecord, render


@pytest.fixture
def record(sample_resume_dict):
    return ResumeRecord.from_dict(sample_resume_dict)


@pytest.mark.unit
def test_render_is_deterministic(record, sample_resume_dict):
    """Identical records produce byte-identical source."""
    first = render(record)
    second = render(ResumeRecord.from_dict(sample_resume_dict))
    assert first == second


@pytest.mark.unit
def test_render_produces_complete_document(record):
    latex = render(record)
    assert latex.startswith("%")
    assert r"\documentclass[letterpaper,11pt]{article}" in latex
    assert r"\begin{document}" in latex
    assert latex.rstrip().endswith(r"\end{document}")


@pytest.mark.unit
def test_render_escapes_user_text(record):
    latex = render(record)
    assert r"Delivered 100\% of packages on time \& intact" in latex
    assert r"Cut fuel costs by \$1,000 per\_trip" in latex
    assert r"Delivered pizza to \#1 customers" in latex
    assert r"Python, C\#" in latex
    # Raw metacharacters from user text never reach the document
    assert "100% of" not in latex
    assert "time & intact" not in latex


@pytest.mark.unit
def test_render_preserves_entry_order(record):
    latex = render(record)
    assert latex.index("Delivery Boy") < latex.index("Pizza Delivery")


@pytest.mark.unit
def test_render_sections_in_layout_order(record):
    latex = render(record)
    positions = [
        latex.index(r"\section{Education}"),
        latex.index(r"\section{Experience}"),
        latex.index(r"\section{Projects}"),
        latex.index(r"\section{Skills}"),
    ]
    assert positions == sorted(positions)


@pytest.mark.unit
def test_render_heading_and_contacts(record):
    latex = render(record)
    assert r"\textbf{\Huge \scshape Philip J. Fry}" in latex
    assert r"\href{mailto:fry@planetexpress.com}{\underline{fry@planetexpress.com}}" in latex
    assert r"\href{https://linkedin.com/in/pjfry}{\underline{linkedin.com/in/pjfry}}" in latex
    assert r"\href{https://github.com/pjfry}{\underline{github.com/pjfry}}" in latex
    assert r"555-0100 $|$ " in latex


@pytest.mark.unit
def test_render_dates(record):
    latex = render(record)
    assert "{Dec 2999 -- Present}" in latex
    assert "{Jan 1999 -- Dec 1999}" in latex
    assert "{Expected May 3001}" in latex


@pytest.mark.unit
def test_render_project_link_is_url_escaped(record):
    latex = render(record)
    assert r"\href{https://example.com/slurm?q=1\#top}{\underline{link}}" in latex


@pytest.mark.unit
def test_render_skill_rows(record):
    latex = render(record)
    assert r"\textbf{Technical Skills}{: Python, LaTeX} \\" in latex
    assert r"\textbf{Soft Skills}{: Teamwork}" in latex


@pytest.mark.unit
def test_render_empty_record_is_valid_document():
    """An empty record yields a compilable document with no section bodies."""
    latex = render(ResumeRecord())
    assert r"\begin{document}" in latex
    assert r"\end{document}" in latex
    assert r"\section{" not in latex
    assert "\n\n\n" not in latex


@pytest.mark.unit
def test_render_omits_excluded_entries(sample_resume_dict):
    sample_resume_dict["experience"][1]["isIncluded"] = False
    sample_resume_dict["projects"][0]["is_included"] = False
    latex = render(ResumeRecord.from_dict(sample_resume_dict))

    assert "Pizza Delivery" not in latex
    assert r"\section{Projects}" not in latex
    assert "Delivery Boy" in latex


@pytest.mark.unit
def test_generator_with_custom_template(tmp_path, record):
    (tmp_path / "mini.tex.jinja").write_text(
        r"\documentclass{article}\begin{document}<<< personal.name | tex >>>\end{document}"
    )
    generator = ResumeLaTeXGenerator(template_path=tmp_path, template_name="mini.tex.jinja")
    assert generator.generate_document(record) == (
        r"\documentclass{article}\begin{document}Philip J. Fry\end{document}"
    )
