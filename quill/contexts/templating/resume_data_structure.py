"""
Resume Data Structures

Typed representation of the structured resume record handed to the renderer:
personal details, experience, projects, education and skills. Each section is
an ordered sequence; order is preserved exactly as supplied.

Records are normally built from the JSON payload of the resume editor
(camelCase keys) or from a YAML file (snake_case keys). Both spellings are
accepted for every field.

Validation is the caller's job. These constructors are lenient: missing
optional fields become empty strings/lists, and nothing here raises for
content problems.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from omegaconf import OmegaConf


class DegreeStatus:
    COMPLETED = "completed"
    IN_PROGRESS = "in-progress"
    EXPECTED = "expected"


def _get(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present, non-None value among the given key spellings."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _bullets(raw: Optional[List[Any]]) -> List[str]:
    """Normalize bullets given as strings or {"text": ...} dicts, dropping blanks."""
    bullets = []
    for item in raw or []:
        text = _text(item.get("text") if isinstance(item, dict) else item)
        if text:
            bullets.append(text)
    return bullets


@dataclass(frozen=True)
class DateSpec:
    """Month/year pair. `is_present` marks an ongoing end date."""

    month: str = ""
    year: str = ""
    is_present: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DateSpec":
        if not data:
            return cls()
        return cls(
            month=_text(data.get("month")),
            year=_text(data.get("year")),
            is_present=bool(_get(data, "is_present", "isPresent", default=False)),
        )

    def display(self) -> str:
        """Render as "Jan 2023", "2023" or "" (month without year is dropped)."""
        if not self.year:
            return ""
        return f"{self.month} {self.year}" if self.month else self.year


def format_date_range(start: DateSpec, end: DateSpec) -> str:
    """
    Format a start/end pair as a resume date range.

    Examples:
        Jan 2023 -- Present
        Mar 2021 -- Dec 2022
        2019            (no start date)
    """
    end_text = "Present" if end.is_present else end.display()
    start_text = start.display()

    if start_text and end_text:
        return f"{start_text} -- {end_text}"
    return start_text or end_text


@dataclass(frozen=True)
class PersonalDetails:
    name: str = ""
    email: str = ""
    phone: str = ""
    location: str = ""
    linkedin: str = ""
    github: str = ""
    website: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PersonalDetails":
        data = data or {}
        return cls(**{name: _text(data.get(name)) for name in cls.__dataclass_fields__})


@dataclass(frozen=True)
class ExperienceEntry:
    title: str
    company_name: str = ""
    location: str = ""
    start_date: DateSpec = field(default_factory=DateSpec)
    end_date: DateSpec = field(default_factory=DateSpec)
    description: str = ""
    bullets: List[str] = field(default_factory=list)
    is_included: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExperienceEntry":
        return cls(
            title=_text(_get(data, "title", "job_title", "jobTitle")),
            company_name=_text(_get(data, "company_name", "companyName")),
            location=_text(data.get("location")),
            start_date=DateSpec.from_dict(_get(data, "start_date", "startDate")),
            end_date=DateSpec.from_dict(_get(data, "end_date", "endDate")),
            description=_text(data.get("description")),
            bullets=_bullets(_get(data, "bullets", "bullet_points", "bulletPoints")),
            is_included=bool(_get(data, "is_included", "isIncluded", default=True)),
        )

    def date_range(self) -> str:
        return format_date_range(self.start_date, self.end_date)


@dataclass(frozen=True)
class ProjectEntry:
    title: str
    technologies: List[str] = field(default_factory=list)
    link: str = ""
    start_date: DateSpec = field(default_factory=DateSpec)
    end_date: DateSpec = field(default_factory=DateSpec)
    description: str = ""
    bullets: List[str] = field(default_factory=list)
    is_included: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectEntry":
        technologies = [_text(t) for t in data.get("technologies") or [] if _text(t)]
        return cls(
            title=_text(data.get("title")),
            technologies=technologies,
            link=_text(data.get("link")),
            start_date=DateSpec.from_dict(_get(data, "start_date", "startDate")),
            end_date=DateSpec.from_dict(_get(data, "end_date", "endDate")),
            description=_text(data.get("description")),
            bullets=_bullets(_get(data, "bullets", "bullet_points", "bulletPoints")),
            is_included=bool(_get(data, "is_included", "isIncluded", default=True)),
        )

    def date_range(self) -> str:
        return format_date_range(self.start_date, self.end_date)


@dataclass(frozen=True)
class EducationEntry:
    institution: str
    degree: str = ""
    degree_status: str = DegreeStatus.COMPLETED
    location: str = ""
    start_date: DateSpec = field(default_factory=DateSpec)
    end_date: DateSpec = field(default_factory=DateSpec)
    description: str = ""
    is_included: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EducationEntry":
        return cls(
            institution=_text(data.get("institution")),
            degree=_text(data.get("degree")),
            degree_status=_text(
                _get(data, "degree_status", "degreeStatus", default=DegreeStatus.COMPLETED)
            ),
            location=_text(data.get("location")),
            start_date=DateSpec.from_dict(_get(data, "start_date", "startDate")),
            end_date=DateSpec.from_dict(_get(data, "end_date", "endDate")),
            description=_text(data.get("description")),
            is_included=bool(_get(data, "is_included", "isIncluded", default=True)),
        )

    def date_label(self) -> str:
        """Graduation label; unfinished degrees are marked "Expected"."""
        end_text = self.end_date.display()
        if self.degree_status in (DegreeStatus.IN_PROGRESS, DegreeStatus.EXPECTED) and end_text:
            return f"Expected {end_text}"
        if end_text:
            return end_text
        return self.start_date.display()


@dataclass(frozen=True)
class Skills:
    hard: List[str] = field(default_factory=list)
    soft: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Skills":
        data = data or {}

        def _skill_list(raw: Any) -> List[str]:
            # Editor payloads nest as {"skills": [...], "suggestions": [...]}
            if isinstance(raw, dict):
                raw = raw.get("skills")
            return [_text(s) for s in raw or [] if _text(s)]

        return cls(
            hard=_skill_list(_get(data, "hard", "hard_skills", "hardSkills")),
            soft=_skill_list(_get(data, "soft", "soft_skills", "softSkills")),
        )

    def is_empty(self) -> bool:
        return not self.hard and not self.soft


@dataclass(frozen=True)
class ResumeRecord:
    """Complete structured resume, ready for rendering."""

    personal: PersonalDetails = field(default_factory=PersonalDetails)
    experience: List[ExperienceEntry] = field(default_factory=list)
    projects: List[ProjectEntry] = field(default_factory=list)
    education: List[EducationEntry] = field(default_factory=list)
    skills: Skills = field(default_factory=Skills)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResumeRecord":
        """
        Build a record from a plain dict.

        Args:
            data: Dict with "personal" (or "personal_details"/"personalDetails"),
                  "experience", "projects", "education" and "skills" keys

        Returns:
            ResumeRecord
        """
        return cls(
            personal=PersonalDetails.from_dict(
                _get(data, "personal", "personal_details", "personalDetails")
            ),
            experience=[ExperienceEntry.from_dict(e) for e in data.get("experience") or []],
            projects=[ProjectEntry.from_dict(p) for p in data.get("projects") or []],
            education=[EducationEntry.from_dict(e) for e in data.get("education") or []],
            skills=Skills.from_dict(data.get("skills")),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "ResumeRecord":
        """Load a record from a YAML file (interpolations resolved)."""
        container = OmegaConf.to_container(OmegaConf.load(path), resolve=True)
        return cls.from_dict(container or {})

    def included_experience(self) -> List[ExperienceEntry]:
        return [e for e in self.experience if e.is_included]

    def included_projects(self) -> List[ProjectEntry]:
        return [p for p in self.projects if p.is_included]

    def included_education(self) -> List[EducationEntry]:
        return [e for e in self.education if e.is_included]
