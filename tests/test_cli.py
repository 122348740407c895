import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

from resume_ai import cli
from resume_ai.domain.result import Err, Ok, ProcessorError, ProcessorErrorCode, ProcessorFailure
from resume_ai.schemas.records import ExtractedJobPosting
from resume_ai.services.error_codes import ERROR_CATALOG, describe_error

_CLEAN_ENV = {"HOME": os.environ.get("HOME", "/tmp"), "PATH": os.environ.get("PATH", "")}

_UNINSTALLED = (
    "RESUME_AI_CLAUDE_PATH=/nonexistent/claude\n"
    "RESUME_AI_CODEX_PATH=/nonexistent/codex\n"
    "RESUME_AI_GEMINI_PATH=/nonexistent/gemini\n"
)


def _run_main(argv):
    out = io.StringIO()
    with redirect_stdout(out):
        code = cli.main(argv)
    return code, out.getvalue()


class TestCliMain(unittest.TestCase):
    def test_providers_reports_every_kind(self):
        with tempfile.TemporaryDirectory() as tmp, patch.dict("os.environ", _CLEAN_ENV, clear=True):
            env_file = Path(tmp) / ".env"
            env_file.write_text(_UNINSTALLED, encoding="utf-8")
            code, output = _run_main(["--env-file", str(env_file), "providers"])
        rows = json.loads(output)
        self.assertEqual(code, 1)
        self.assertEqual({row["provider"] for row in rows}, {"claude", "codex", "gemini", "openai"})
        self.assertFalse(any(row["available"] for row in rows))
        self.assertEqual([row["provider"] for row in rows if row["active"]], ["claude"])

    def test_unavailable_provider_exits_with_error_payload(self):
        with tempfile.TemporaryDirectory() as tmp, patch.dict("os.environ", _CLEAN_ENV, clear=True):
            env_file = Path(tmp) / ".env"
            env_file.write_text(_UNINSTALLED, encoding="utf-8")
            job = Path(tmp) / "job.txt"
            job.write_text("Senior Python developer", encoding="utf-8")
            code, output = _run_main(["--env-file", str(env_file), "extract-job", "--job", str(job)])
        self.assertEqual(code, 2)
        self.assertEqual(json.loads(output)["error"]["code"], "PROVIDER_UNAVAILABLE")

    def test_missing_input_file(self):
        with tempfile.TemporaryDirectory() as tmp, patch.dict("os.environ", _CLEAN_ENV, clear=True):
            env_file = Path(tmp) / ".env"
            env_file.write_text(_UNINSTALLED, encoding="utf-8")
            code, output = _run_main(
                ["--env-file", str(env_file), "extract-resume", "--document", str(Path(tmp) / "missing.txt")]
            )
        self.assertEqual(code, 2)
        self.assertEqual(json.loads(output)["error"]["code"], "INVALID_INPUT")

    def test_env_file_values_reach_process_environment(self):
        env = dict(_CLEAN_ENV, OPENAI_API_KEY="from-shell")
        with tempfile.TemporaryDirectory() as tmp, patch.dict("os.environ", env, clear=True):
            env_file = Path(tmp) / ".env"
            env_file.write_text(
                _UNINSTALLED + "GEMINI_API_KEY=from-file\nOPENAI_API_KEY=from-file\n", encoding="utf-8"
            )
            _run_main(["--env-file", str(env_file), "providers"])
            gemini_key = os.environ.get("GEMINI_API_KEY")
            openai_key = os.environ.get("OPENAI_API_KEY")
        self.assertEqual(gemini_key, "from-file")
        self.assertEqual(openai_key, "from-shell")

    def test_emit_result_ok_uses_wire_names(self):
        out = io.StringIO()
        with redirect_stdout(out):
            code = cli._emit_result(Ok(ExtractedJobPosting(job_title="SRE"), metadata={"attempts": 1}))
        payload = json.loads(out.getvalue())
        self.assertEqual(code, 0)
        self.assertEqual(payload["data"]["jobTitle"], "SRE")
        self.assertEqual(payload["metadata"], {"attempts": 1})


class TestErrorCatalog(unittest.TestCase):
    def test_every_code_has_an_entry(self):
        self.assertEqual({entry.code for entry in ERROR_CATALOG}, set(ProcessorErrorCode))

    def test_describe_error(self):
        error = ProcessorError(ProcessorErrorCode.TIMEOUT, "claude did not finish", {"timeout_ms": 1000})
        described = describe_error(error)
        self.assertEqual(described["code"], "TIMEOUT")
        self.assertEqual(described["message"], "claude did not finish")
        self.assertIn("retry", described["actions"])
        self.assertEqual(described["details"], {"timeout_ms": 1000})

    def test_err_unwrap_raises(self):
        result = Err(ProcessorError(ProcessorErrorCode.CANCELLED, "stop"))
        with self.assertRaises(ProcessorFailure):
            result.unwrap()


if __name__ == "__main__":
    unittest.main()
