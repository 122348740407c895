import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from resume_ai.app_container import build_ai_processor, build_provider_registry
from resume_ai.config import Settings, apply_env_defaults, load_env_file
from resume_ai.domain.contracts import ProviderKind
from resume_ai.providers.api_provider import OpenAIApiProvider
from resume_ai.providers.cli_provider import ClaudeCliProvider, GeminiCliProvider

_CLEAN_ENV = {"HOME": os.environ.get("HOME", "/tmp"), "PATH": os.environ.get("PATH", "")}


def _write_env(tmp: str, text: str) -> Path:
    path = Path(tmp) / ".env"
    path.write_text(text, encoding="utf-8")
    return path


class TestEnvFile(unittest.TestCase):
    def test_load_env_file_skips_comments_and_strips_quotes(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = _write_env(tmp, "# comment\nA=1\nB = \"two\"\nnot a pair\nC='three'\n")
            self.assertEqual(load_env_file(path), {"A": "1", "B": "two", "C": "three"})

    def test_missing_env_file_is_empty(self):
        self.assertEqual(load_env_file(Path("/nonexistent/resume-ai/.env")), {})

    def test_apply_env_defaults_never_overwrites(self):
        target = {"KEEP": "original", "EMPTY": ""}
        applied = apply_env_defaults({"KEEP": "new", "EMPTY": "filled", "ADDED": "x"}, target)
        self.assertEqual(applied, 2)
        self.assertEqual(target, {"KEEP": "original", "EMPTY": "filled", "ADDED": "x"})


class TestSettingsFromEnv(unittest.TestCase):
    def test_defaults_without_configuration(self):
        with tempfile.TemporaryDirectory() as tmp, patch.dict("os.environ", _CLEAN_ENV, clear=True):
            settings = Settings.from_env(Path(tmp) / ".env")
        self.assertEqual(settings.active_provider, ProviderKind.CLAUDE)
        self.assertFalse(settings.enable_validation_retry)
        self.assertEqual(settings.max_validation_retries, 1)
        self.assertTrue(settings.sanitize_output)
        claude = settings.provider_config(ProviderKind.CLAUDE)
        self.assertEqual(claude.executable, "claude")
        self.assertEqual(claude.timeout_ms, 120_000)
        self.assertEqual(claude.max_transport_retries, 0)
        gemini = settings.provider_config(ProviderKind.GEMINI)
        self.assertEqual(gemini.max_transport_retries, 1)
        self.assertFalse(settings.explicit_paths[ProviderKind.CLAUDE])

    def test_env_file_values(self):
        with tempfile.TemporaryDirectory() as tmp, patch.dict("os.environ", _CLEAN_ENV, clear=True):
            path = _write_env(
                tmp,
                "RESUME_AI_PROVIDER=gemini\n"
                "RESUME_AI_GEMINI_PATH=/opt/tools/gemini\n"
                "RESUME_AI_GEMINI_TIMEOUT_MS=30000\n"
                "RESUME_AI_GEMINI_MAX_RETRIES=3\n"
                "RESUME_AI_VALIDATION_RETRY=true\n"
                "RESUME_AI_MAX_VALIDATION_RETRIES=2\n"
                "OPENAI_API_KEY=sk-from-file\n",
            )
            settings = Settings.from_env(path)
        self.assertEqual(settings.active_provider, ProviderKind.GEMINI)
        gemini = settings.provider_config(ProviderKind.GEMINI)
        self.assertEqual(gemini.executable, "/opt/tools/gemini")
        self.assertEqual(gemini.timeout_ms, 30_000)
        self.assertEqual(gemini.max_transport_retries, 3)
        self.assertTrue(settings.explicit_paths[ProviderKind.GEMINI])
        self.assertTrue(settings.enable_validation_retry)
        self.assertEqual(settings.max_validation_retries, 2)
        self.assertEqual(settings.provider_config(ProviderKind.OPENAI).api_key, "sk-from-file")

    def test_process_env_wins_over_file(self):
        env = dict(_CLEAN_ENV, RESUME_AI_CLAUDE_TIMEOUT_MS="9000")
        with tempfile.TemporaryDirectory() as tmp, patch.dict("os.environ", env, clear=True):
            path = _write_env(tmp, "RESUME_AI_CLAUDE_TIMEOUT_MS=1000\n")
            settings = Settings.from_env(path)
        self.assertEqual(settings.provider_config(ProviderKind.CLAUDE).timeout_ms, 9000)

    def test_bad_values_fall_back_to_defaults(self):
        env = dict(_CLEAN_ENV, RESUME_AI_PROVIDER="copilot", RESUME_AI_CODEX_TIMEOUT_MS="soon")
        with tempfile.TemporaryDirectory() as tmp, patch.dict("os.environ", env, clear=True):
            settings = Settings.from_env(Path(tmp) / ".env")
        self.assertEqual(settings.active_provider, ProviderKind.CLAUDE)
        self.assertEqual(settings.provider_config(ProviderKind.CODEX).timeout_ms, 120_000)


class TestWiring(unittest.TestCase):
    def _settings(self, tmp):
        with patch.dict("os.environ", _CLEAN_ENV, clear=True):
            path = _write_env(
                tmp,
                "RESUME_AI_PROVIDER=gemini\n"
                "RESUME_AI_CLAUDE_PATH=/nonexistent/claude\n"
                "RESUME_AI_CODEX_PATH=/nonexistent/codex\n"
                "RESUME_AI_GEMINI_PATH=/nonexistent/gemini\n",
            )
            return Settings.from_env(path)

    def test_registry_holds_every_kind(self):
        with tempfile.TemporaryDirectory() as tmp:
            registry = build_provider_registry(self._settings(tmp))
        self.assertEqual(set(registry.kinds()), set(ProviderKind))
        self.assertIsInstance(registry.active(), GeminiCliProvider)
        self.assertIsInstance(registry.get_provider(ProviderKind.CLAUDE), ClaudeCliProvider)
        self.assertIsInstance(registry.get_provider(ProviderKind.OPENAI), OpenAIApiProvider)
        self.assertEqual(registry.get_provider(ProviderKind.CLAUDE).get_config().executable, "/nonexistent/claude")

    def test_processor_config_follows_settings(self):
        with tempfile.TemporaryDirectory() as tmp:
            settings = self._settings(tmp)
        settings.enable_validation_retry = True
        settings.max_validation_retries = 4
        processor = build_ai_processor(settings)
        self.assertTrue(processor.config.enable_retry_on_validation_failure)
        self.assertEqual(processor.config.max_validation_retries, 4)
        self.assertEqual(processor.registry.active_kind(), ProviderKind.GEMINI)


if __name__ == "__main__":
    unittest.main()
