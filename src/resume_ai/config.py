import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

from resume_ai.domain.contracts import ProviderConfig, ProviderKind

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "resume-ai"
ENV_PREFIX = "RESUME_AI_"

# kind -> (executable, timeout_ms, max_transport_retries, model)
PROVIDER_DEFAULTS: Dict[ProviderKind, tuple] = {
    ProviderKind.CLAUDE: ("claude", 120_000, 0, None),
    ProviderKind.CODEX: ("codex", 120_000, 0, "o3-mini"),
    ProviderKind.GEMINI: ("gemini", 60_000, 1, "gemini-2.5-flash"),
    ProviderKind.OPENAI: ("https://api.openai.com/v1", 60_000, 1, "gpt-4o-mini"),
}


def load_env_file(path: Path) -> Dict[str, str]:
    data: Dict[str, str] = {}
    if not path.exists():
        return data
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            k, v = line.split("=", 1)
            data[k.strip()] = v.strip().strip('"').strip("'")
    except OSError as exc:
        logger.warning("Failed to read %s: %s", path, exc)
    return data


def get_env_value(key: str, env_file: Mapping[str, str]) -> Optional[str]:
    return os.environ.get(key) or env_file.get(key)


def apply_env_defaults(env_file: Mapping[str, str], target_env: Optional[Dict[str, str]] = None) -> int:
    """Populate missing process env vars from .env-style mapping.

    Existing environment values are never overwritten.
    Returns the number of keys applied.
    """
    target = target_env if target_env is not None else os.environ  # type: ignore[assignment]
    applied = 0
    for raw_key, raw_value in (env_file or {}).items():
        key = str(raw_key or "").strip()
        if not key:
            continue
        if key in target and str(target.get(key) or "").strip():
            continue
        target[key] = str(raw_value or "")
        applied += 1
    return applied


def _env_int(key: str, env_file: Mapping[str, str], default: int, minimum: int = 0) -> int:
    raw = (get_env_value(key, env_file) or "").strip()
    if not raw:
        return default
    try:
        return max(minimum, int(raw))
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", key, raw)
        return default


def _env_bool(key: str, env_file: Mapping[str, str], default: bool) -> bool:
    raw = (get_env_value(key, env_file) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    active_provider: ProviderKind = ProviderKind.CLAUDE
    providers: Dict[ProviderKind, ProviderConfig] = field(default_factory=dict)
    # True when the executable came from configuration rather than defaults.
    explicit_paths: Dict[ProviderKind, bool] = field(default_factory=dict)
    enable_validation_retry: bool = False
    max_validation_retries: int = 1
    sanitize_output: bool = True
    include_metadata: bool = True
    check_timeout_sec: int = 10

    def provider_config(self, kind: ProviderKind) -> ProviderConfig:
        config = self.providers.get(kind)
        if config is not None:
            return config
        executable, timeout_ms, retries, model = PROVIDER_DEFAULTS[kind]
        return ProviderConfig(
            executable=executable,
            timeout_ms=timeout_ms,
            max_transport_retries=retries,
            model=model,
        )

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "Settings":
        env_file = load_env_file(env_path or DEFAULT_CONFIG_DIR / ".env")
        providers: Dict[ProviderKind, ProviderConfig] = {}
        explicit: Dict[ProviderKind, bool] = {}
        for kind, (executable, timeout_ms, retries, model) in PROVIDER_DEFAULTS.items():
            prefix = f"{ENV_PREFIX}{kind.value.upper()}_"
            if kind is ProviderKind.OPENAI:
                configured = get_env_value("OPENAI_BASE_URL", env_file)
                model_value = get_env_value("OPENAI_MODEL", env_file)
                api_key = get_env_value("OPENAI_API_KEY", env_file)
            else:
                configured = get_env_value(prefix + "PATH", env_file)
                model_value = get_env_value(prefix + "MODEL", env_file)
                api_key = None
            explicit[kind] = bool(configured)
            providers[kind] = ProviderConfig(
                executable=configured or executable,
                timeout_ms=_env_int(prefix + "TIMEOUT_MS", env_file, timeout_ms, minimum=1),
                max_transport_retries=_env_int(prefix + "MAX_RETRIES", env_file, retries),
                model=model_value or model,
                api_key=api_key,
            )

        raw_kind = get_env_value(ENV_PREFIX + "PROVIDER", env_file) or ProviderKind.CLAUDE.value
        try:
            active = ProviderKind.parse(raw_kind)
        except ValueError:
            logger.warning("Unknown %sPROVIDER=%r, using claude", ENV_PREFIX, raw_kind)
            active = ProviderKind.CLAUDE

        return cls(
            active_provider=active,
            providers=providers,
            explicit_paths=explicit,
            enable_validation_retry=_env_bool(ENV_PREFIX + "VALIDATION_RETRY", env_file, False),
            max_validation_retries=_env_int(ENV_PREFIX + "MAX_VALIDATION_RETRIES", env_file, 1),
            sanitize_output=_env_bool(ENV_PREFIX + "SANITIZE_OUTPUT", env_file, True),
            include_metadata=_env_bool(ENV_PREFIX + "INCLUDE_METADATA", env_file, True),
            check_timeout_sec=_env_int(ENV_PREFIX + "CHECK_TIMEOUT_SEC", env_file, 10, minimum=1),
        )
