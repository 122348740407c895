import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from resume_ai.app_container import build_ai_processor
from resume_ai.config import DEFAULT_CONFIG_DIR, Settings, apply_env_defaults, load_env_file
from resume_ai.domain.contracts import ProviderKind
from resume_ai.domain.result import Ok, ProcessorErrorCode, Result
from resume_ai.events.progress import ProgressEvent
from resume_ai.schemas.records import Resume
from resume_ai.services.ai_processor import AIProcessor
from resume_ai.services.error_codes import describe_error

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    level = (level or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="resume-ai", description="AI resume and cover-letter tools")
    parser.add_argument(
        "--env-file",
        default=str(DEFAULT_CONFIG_DIR / ".env"),
        help="Path to a .env file with provider settings (default: ~/.config/resume-ai/.env)",
    )
    parser.add_argument("--provider", choices=[k.value for k in ProviderKind], help="Provider to use")
    parser.add_argument("--timeout-ms", type=int, help="Override the provider timeout for this call")
    parser.add_argument(
        "--validation-retries",
        type=int,
        help="Re-run the prompt up to N times when the output fails validation",
    )
    parser.add_argument("--progress", action="store_true", help="Print progress events to stderr")
    parser.add_argument("--log-level", default=os.environ.get("LOG_LEVEL", "WARNING"))

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("providers", help="Check which providers are available")

    refine = sub.add_parser("refine", help="Tailor a resume to a job posting")
    refine.add_argument("--resume", required=True, help="Resume JSON file")
    refine.add_argument("--job", required=True, help="Job posting text file")

    cover = sub.add_parser("cover-letter", help="Generate a cover letter")
    cover.add_argument("--resume", required=True, help="Resume JSON file")
    cover.add_argument("--job", required=True, help="Job posting text file")
    cover.add_argument("--company-info", help="Optional company information JSON file")

    extract = sub.add_parser("extract-resume", help="Convert resume text into structured JSON")
    extract.add_argument("--document", required=True, help="Plain-text resume document")

    job = sub.add_parser("extract-job", help="Extract structured details from a job posting")
    job.add_argument("--job", required=True, help="Job posting text file")
    return parser


def _read_text(path: str) -> str:
    return Path(path).expanduser().read_text(encoding="utf-8")


def _read_json(path: str) -> Any:
    return json.loads(_read_text(path))


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _print_progress(event: ProgressEvent) -> None:
    print(json.dumps(event.to_dict(), ensure_ascii=False), file=sys.stderr)


async def _check_providers(processor: AIProcessor) -> int:
    registry = processor.registry
    statuses = await registry.check_all_availability()
    active = registry.active_kind()
    rows: List[Dict[str, Any]] = []
    for status in statuses.values():
        row = status.to_dict()
        row["active"] = status.provider == active
        rows.append(row)
    _print_json(rows)
    return 0 if any(s.available for s in statuses.values()) else 1


def _emit_result(result: Result[Any]) -> int:
    if isinstance(result, Ok):
        value = result.value
        payload = value.to_wire() if hasattr(value, "to_wire") else value
        _print_json({"data": payload, "metadata": result.metadata})
        return 0
    _print_json({"error": describe_error(result.error)})
    return 2


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    processor = build_ai_processor(settings)
    if args.progress:
        processor.progress.subscribe(_print_progress)
    run_kwargs: Dict[str, Any] = {"timeout_ms": args.timeout_ms}
    if args.validation_retries is not None:
        run_kwargs["enable_retry"] = args.validation_retries > 0
        run_kwargs["max_validation_retries"] = args.validation_retries

    if args.command == "providers":
        return await _check_providers(processor)
    if args.command == "refine":
        resume = Resume.model_validate(_read_json(args.resume))
        result = await processor.refine_resume(resume, _read_text(args.job), **run_kwargs)
    elif args.command == "cover-letter":
        resume = Resume.model_validate(_read_json(args.resume))
        company = _read_json(args.company_info) if args.company_info else None
        result = await processor.generate_cover_letter(resume, _read_text(args.job), company, **run_kwargs)
    elif args.command == "extract-resume":
        result = await processor.extract_resume(_read_text(args.document), **run_kwargs)
    else:
        result = await processor.extract_job_posting(_read_text(args.job), **run_kwargs)
    return _emit_result(result)


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    env_path = Path(args.env_file).expanduser()
    # Spawned CLIs inherit os.environ, so keys like GEMINI_API_KEY in the .env reach them.
    applied = apply_env_defaults(load_env_file(env_path))
    if applied:
        logger.debug("Applied %d defaults from %s", applied, env_path)
    settings = Settings.from_env(env_path)
    if args.provider:
        settings.active_provider = ProviderKind.parse(args.provider)

    try:
        return asyncio.run(_run(args, settings))
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        _print_json({"error": {"code": ProcessorErrorCode.INVALID_INPUT.value, "message": str(exc)}})
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
