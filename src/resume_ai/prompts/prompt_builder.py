from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional, Tuple, Type

from pydantic import BaseModel

from resume_ai.schemas.records import (
    ExtractedJobPosting,
    GeneratedCoverLetter,
    RefinedResume,
    Resume,
)

JSON_ONLY_RULE = (
    "Respond with ONLY a valid JSON object that matches the schema below. "
    "Do not add any text before or after it and do not wrap it in a code block."
)


@dataclass(frozen=True)
class PromptPair:
    system: str
    user: str

    def combined(self) -> str:
        return f"{self.system}\n\n---\n\n{self.user}"


@dataclass(frozen=True)
class RefinementOptions:
    max_summary_chars: int = 500
    max_highlights_per_role: int = 6
    include_metadata: bool = True
    tone: Literal["professional", "conversational", "technical"] = "professional"
    focus_areas: Tuple[str, ...] = ("skills", "experience", "achievements")
    preserve_all_content: bool = False
    custom_instructions: str = ""


@dataclass(frozen=True)
class CoverLetterOptions:
    tone: Literal["formal", "conversational", "enthusiastic"] = "formal"
    max_body_paragraphs: int = 3
    include_metadata: bool = True
    custom_instructions: str = ""


def schema_block(model: Type[BaseModel]) -> str:
    schema = model.model_json_schema(by_alias=True)
    return f"## Output schema ({model.__name__})\n\n{json.dumps(schema, indent=2)}"


def _tagged(tag: str, content: str) -> str:
    return f"<{tag}>\n{content.strip()}\n</{tag}>"


def _resume_json(resume: Resume) -> str:
    return json.dumps(resume.to_wire(), indent=2, ensure_ascii=False)


def build_resume_refinement_prompt(
    resume: Resume,
    job_posting: str,
    options: Optional[RefinementOptions] = None,
) -> PromptPair:
    opts = options or RefinementOptions()
    content_rule = (
        "Keep every experience, skill and achievement from the original resume."
        if opts.preserve_all_content
        else "You may condense content that is not relevant to this role."
    )
    system_lines = [
        "You are an expert resume writer who tailors resumes to job postings for "
        "applicant tracking systems.",
        "Never invent facts: every statement must be supported by the original resume.",
        f"Use a {opts.tone} tone. Keep the summary under {opts.max_summary_chars} characters "
        f"and at most {opts.max_highlights_per_role} highlights per role.",
        content_rule,
    ]
    if opts.custom_instructions:
        system_lines.append(opts.custom_instructions.strip())
    system_lines.append(JSON_ONLY_RULE)

    user_parts = [
        "## Job posting",
        _tagged("job_posting", job_posting),
        "## Original resume",
        _tagged("original_resume", _resume_json(resume)),
        "## Task",
        "Reorder and reword the resume so the most relevant experience, skills and "
        "keywords for this job come first. Do not add skills the candidate does not list.",
    ]
    if opts.focus_areas:
        user_parts.append(f"Focus areas: {', '.join(opts.focus_areas)}.")
    if opts.include_metadata:
        user_parts.append(
            "Include refinementMetadata with targetedKeywords, a short changesSummary "
            "and a confidenceScore between 0 and 1."
        )
    user_parts.append(schema_block(RefinedResume))
    return PromptPair(system="\n\n".join(system_lines), user="\n\n".join(user_parts))


def build_cover_letter_prompt(
    resume: Resume,
    job_posting: str,
    company_info: Optional[Dict[str, Any]] = None,
    options: Optional[CoverLetterOptions] = None,
) -> PromptPair:
    opts = options or CoverLetterOptions()
    system_lines = [
        "You are a career coach who writes concise, specific cover letters.",
        "Only mention experience that appears in the candidate's resume.",
        f"Write in a {opts.tone} tone with at most {opts.max_body_paragraphs} body paragraphs.",
    ]
    if opts.custom_instructions:
        system_lines.append(opts.custom_instructions.strip())
    system_lines.append(JSON_ONLY_RULE)

    user_parts = [
        "## Job posting",
        _tagged("job_posting", job_posting),
        "## Candidate resume",
        _tagged("resume", _resume_json(resume)),
    ]
    if company_info:
        user_parts += [
            "## Company information",
            _tagged("company_info", json.dumps(company_info, indent=2, ensure_ascii=False)),
        ]
    user_parts.append(
        f"Sign the letter as {resume.personal_info.name}. Put each body paragraph in its "
        "own entry of the body array."
    )
    if opts.include_metadata:
        user_parts.append("Include metadata with highlightedExperiences and the tone you used.")
    user_parts.append(schema_block(GeneratedCoverLetter))
    return PromptPair(system="\n\n".join(system_lines), user="\n\n".join(user_parts))


def build_resume_extraction_prompt(document_text: str) -> PromptPair:
    system = "\n\n".join([
        "You convert resume documents into structured data.",
        "Copy text exactly as written; leave optional fields out when the document does not state them.",
        JSON_ONLY_RULE,
    ])
    user = "\n\n".join([
        "## Resume document",
        _tagged("document", document_text),
        schema_block(Resume),
    ])
    return PromptPair(system=system, user=user)


def build_job_extraction_prompt(job_text: str) -> PromptPair:
    system = "\n\n".join([
        "You extract structured details from job postings.",
        "Use null for fields the posting does not mention and empty arrays for missing lists.",
        JSON_ONLY_RULE,
    ])
    user = "\n\n".join([
        "## Job posting",
        _tagged("job_posting", job_text),
        schema_block(ExtractedJobPosting),
    ])
    return PromptPair(system=system, user=user)
