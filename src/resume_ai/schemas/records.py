"""Structured records exchanged with the AI backends.

Field names are camelCase on the wire (that is what the prompts ask the
models to emit) and snake_case in Python.
"""
from __future__ import annotations

from typing import List, Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ContactType = Literal[
    "email", "phone", "linkedin", "github", "twitter", "instagram", "website", "portfolio", "other"
]
SkillLevel = Literal["beginner", "intermediate", "advanced", "expert"]
CoverLetterTone = Literal["formal", "conversational", "enthusiastic"]


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _check_url(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("Invalid URL")
    return value


class Contact(Record):
    type: ContactType
    value: str = Field(min_length=1)
    label: Optional[str] = None


class PersonalInfo(Record):
    name: str = Field(min_length=1)
    location: Optional[str] = None
    summary: Optional[str] = None
    contacts: List[Contact] = Field(default_factory=list)


class WorkExperience(Record):
    company: str = Field(min_length=1)
    title: str = Field(min_length=1)
    start_date: str = Field(min_length=1)
    end_date: Optional[str] = None
    location: Optional[str] = None
    highlights: List[str] = Field(default_factory=list)


class Education(Record):
    institution: str = Field(min_length=1)
    degree: str = Field(min_length=1)
    field: Optional[str] = None
    graduation_date: Optional[str] = None
    gpa: Optional[str] = None
    highlights: List[str] = Field(default_factory=list)


class Skill(Record):
    name: str = Field(min_length=1)
    level: Optional[SkillLevel] = None
    category: Optional[str] = None


class Project(Record):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    technologies: List[str] = Field(default_factory=list)
    url: Optional[str] = None
    highlights: List[str] = Field(default_factory=list)

    @field_validator("url")
    @classmethod
    def url_has_scheme(cls, value: Optional[str]) -> Optional[str]:
        return _check_url(value)


class Certification(Record):
    name: str = Field(min_length=1)
    issuer: str = Field(min_length=1)
    date: Optional[str] = None
    url: Optional[str] = None

    @field_validator("url")
    @classmethod
    def url_has_scheme(cls, value: Optional[str]) -> Optional[str]:
        return _check_url(value)


class Resume(Record):
    personal_info: PersonalInfo
    work_experience: List[WorkExperience] = Field(default_factory=list)
    education: List[Education] = Field(default_factory=list)
    skills: List[Skill] = Field(default_factory=list)
    projects: List[Project] = Field(default_factory=list)
    certifications: List[Certification] = Field(default_factory=list)


class RefinementMetadata(Record):
    targeted_keywords: Optional[List[str]] = None
    changes_summary: Optional[str] = None
    confidence_score: Optional[float] = Field(default=None, ge=0, le=1)


class RefinedResume(Resume):
    refinement_metadata: Optional[RefinementMetadata] = None


class CoverLetter(Record):
    recipient_name: Optional[str] = None
    recipient_title: Optional[str] = None
    company_name: str = Field(min_length=1)
    company_address: Optional[str] = None
    date: Optional[str] = None
    opening: str = Field(min_length=1)
    body: List[str] = Field(min_length=1)
    closing: str = Field(min_length=1)
    signature: str = Field(min_length=1)


class CoverLetterMetadata(Record):
    highlighted_experiences: Optional[List[str]] = None
    tone: Optional[CoverLetterTone] = None


class GeneratedCoverLetter(CoverLetter):
    metadata: Optional[CoverLetterMetadata] = None


class JobPosting(Record):
    company_name: str = Field(min_length=1)
    job_title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    requirements: List[str] = Field(default_factory=list)
    responsibilities: List[str] = Field(default_factory=list)
    location: Optional[str] = None


class ExtractedJobPosting(Record):
    company_name: Optional[str] = None
    company_description: Optional[str] = None
    job_title: Optional[str] = None
    location: Optional[str] = None
    employment_type: Optional[str] = None
    salary_range: Optional[str] = None
    requirements: List[str] = Field(default_factory=list)
    responsibilities: List[str] = Field(default_factory=list)
    qualifications: List[str] = Field(default_factory=list)
    benefits: List[str] = Field(default_factory=list)
    required_skills: List[str] = Field(default_factory=list)
    preferred_skills: List[str] = Field(default_factory=list)
    team_info: Optional[str] = None
    application_deadline: Optional[str] = None
