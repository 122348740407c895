import pytest

from resume_ai.prompts.prompt_builder import (
    CoverLetterOptions,
    RefinementOptions,
    build_cover_letter_prompt,
    build_job_extraction_prompt,
    build_resume_extraction_prompt,
    build_resume_refinement_prompt,
)
from resume_ai.schemas.records import CoverLetter, PersonalInfo, Project, Resume, WorkExperience
from resume_ai.schemas.validation import PydanticSchema, SchemaError


def _resume():
    return Resume(
        personal_info=PersonalInfo(name="Grace Hopper"),
        work_experience=[WorkExperience(company="Navy", title="Rear Admiral", start_date="1943")],
    )


class TestPromptBuilders:
    def test_refinement_prompt_contains_inputs_and_schema(self):
        prompt = build_resume_refinement_prompt(_resume(), "COBOL maintainer wanted")
        assert "<job_posting>\nCOBOL maintainer wanted\n</job_posting>" in prompt.user
        assert '"workExperience"' in prompt.user
        assert "Output schema (RefinedResume)" in prompt.user
        assert "refinementMetadata" in prompt.user
        assert "Never invent facts" in prompt.system

    def test_refinement_options(self):
        opts = RefinementOptions(
            tone="technical",
            include_metadata=False,
            preserve_all_content=True,
            focus_areas=("skills",),
            custom_instructions="Use British spelling.",
        )
        prompt = build_resume_refinement_prompt(_resume(), "job", opts)
        assert "technical tone" in prompt.system
        assert "Keep every experience" in prompt.system
        assert "Use British spelling." in prompt.system
        assert "Focus areas: skills." in prompt.user
        assert "Include refinementMetadata" not in prompt.user

    def test_cover_letter_prompt_with_company_info(self):
        prompt = build_cover_letter_prompt(
            _resume(), "job", {"mission": "compilers"}, CoverLetterOptions(tone="enthusiastic")
        )
        assert "<company_info>" in prompt.user
        assert "Sign the letter as Grace Hopper" in prompt.user
        assert "enthusiastic tone" in prompt.system

    def test_extraction_prompts(self):
        resume_prompt = build_resume_extraction_prompt("Grace Hopper, programmer")
        assert "<document>\nGrace Hopper, programmer\n</document>" in resume_prompt.user
        job_prompt = build_job_extraction_prompt("Hiring an SRE")
        assert "Output schema (ExtractedJobPosting)" in job_prompt.user
        assert job_prompt.combined().startswith(job_prompt.system)


class TestRecords:
    def test_camel_case_wire_format(self):
        wire = _resume().to_wire()
        assert wire["personalInfo"]["name"] == "Grace Hopper"
        assert wire["workExperience"][0]["startDate"] == "1943"
        assert "endDate" not in wire["workExperience"][0]

    def test_snake_case_population(self):
        resume = Resume.model_validate({"personal_info": {"name": "A"}})
        assert resume.personal_info.name == "A"

    def test_project_url_must_have_scheme(self):
        with pytest.raises(ValueError):
            Project(name="compiler", url="not a url")
        assert Project(name="compiler", url="https://example.com").url == "https://example.com"

    def test_schema_error_lists_paths(self):
        schema = PydanticSchema(CoverLetter)
        with pytest.raises(SchemaError) as excinfo:
            schema.validate({"companyName": "Acme", "opening": "Hi", "body": [], "closing": "Bye"})
        violations = excinfo.value.violations
        assert any(v.startswith("body:") for v in violations)
        assert any(v.startswith("signature:") for v in violations)
