"""Locate AI command-line tools outside of an interactive shell.

Desktop launchers and service managers start processes with a minimal
``PATH`` that usually misses the directories npm, Homebrew or Volta install
into.  ``build_spawn_env`` widens ``PATH`` for child processes and
``detect_cli_path`` searches well-known install locations directly.
"""
import logging
import os
import shutil
import sys
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from resume_ai.observability.structured_log import log_json

logger = logging.getLogger(__name__)

_cli_path_cache: Dict[str, Optional[str]] = {}


def _is_windows() -> bool:
    return sys.platform.startswith("win")


def _windows_dirs(home: Path) -> Dict[str, Path]:
    return {
        "appdata": Path(os.environ.get("APPDATA") or home / "AppData" / "Roaming"),
        "localappdata": Path(os.environ.get("LOCALAPPDATA") or home / "AppData" / "Local"),
    }


def extra_search_paths() -> List[str]:
    home = Path.home()
    if _is_windows():
        dirs = _windows_dirs(home)
        choco = Path(os.environ.get("ChocolateyInstall") or r"C:\ProgramData\chocolatey")
        paths = [
            home / ".local" / "bin",
            dirs["appdata"] / "npm",
            dirs["localappdata"] / "npm",
            home / "scoop" / "shims",
            choco / "bin",
            home / ".volta" / "bin",
        ]
        return [str(p) for p in paths]
    return [
        f"{home}/.local/bin",
        f"{home}/.claude/local",
        "/opt/homebrew/bin",
        "/opt/homebrew/sbin",
        "/usr/local/bin",
        "/usr/local/sbin",
        f"{home}/bin",
        f"{home}/.volta/bin",
        f"{home}/.npm-global/bin",
        "/usr/bin",
        "/bin",
        "/usr/sbin",
        "/sbin",
    ]


def build_spawn_env(base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    env = dict(os.environ if base is None else base)
    parts = [p for p in (env.get("PATH") or "").split(os.pathsep) if p]
    for extra in extra_search_paths():
        if extra not in parts:
            parts.insert(0, extra)
    env["PATH"] = os.pathsep.join(parts)
    return env


def known_install_paths(name: str) -> List[str]:
    home = Path.home()
    if _is_windows():
        dirs = _windows_dirs(home)
        table = {
            "claude": [
                home / ".local" / "bin" / "claude.exe",
                dirs["localappdata"] / "Microsoft" / "WinGet" / "Links" / "claude.exe",
                dirs["appdata"] / "npm" / "claude.cmd",
                dirs["localappdata"] / "npm" / "claude.cmd",
            ],
            "codex": [
                dirs["appdata"] / "npm" / "codex.cmd",
                dirs["localappdata"] / "npm" / "codex.cmd",
                home / ".local" / "bin" / "codex.exe",
            ],
            "gemini": [
                dirs["appdata"] / "npm" / "gemini.cmd",
                dirs["localappdata"] / "npm" / "gemini.cmd",
            ],
        }
    else:
        table = {
            "claude": [
                home / ".claude" / "local" / "claude",
                home / ".local" / "bin" / "claude",
                Path("/opt/homebrew/bin/claude"),
                Path("/usr/local/bin/claude"),
                home / ".npm-global" / "bin" / "claude",
                home / "bin" / "claude",
            ],
            "codex": [
                home / ".local" / "bin" / "codex",
                Path("/opt/homebrew/bin/codex"),
                Path("/usr/local/bin/codex"),
                home / ".npm-global" / "bin" / "codex",
            ],
            "gemini": [
                home / ".local" / "bin" / "gemini",
                Path("/opt/homebrew/bin/gemini"),
                Path("/usr/local/bin/gemini"),
                home / ".npm-global" / "bin" / "gemini",
            ],
        }
    return [str(p) for p in table.get(name, [])]


def _search_known_paths(name: str) -> Optional[str]:
    for candidate in known_install_paths(name):
        path = Path(candidate)
        if not path.is_file():
            continue
        if _is_windows() or os.access(path, os.X_OK):
            return candidate
    return None


def detect_cli_path(name: str) -> Optional[str]:
    """Return the absolute path of CLI ``name`` or None when it is not installed.

    Known install locations win over ``PATH`` lookup.  Results, including
    misses, are cached until :func:`clear_cli_cache`.
    """
    if name in _cli_path_cache:
        return _cli_path_cache[name]
    found = _search_known_paths(name)
    source = "known_path"
    if found is None:
        found = shutil.which(name, path=build_spawn_env().get("PATH"))
        source = "path_lookup"
    _cli_path_cache[name] = found
    log_json(logger, "shell_env.detect", cli=name, found=bool(found), path=found or "", source=source)
    return found


def resolve_executable(name: str) -> str:
    """Absolute paths pass through; bare names resolve via detection or stay as-is."""
    if os.path.isabs(name) or os.sep in name:
        return name
    return detect_cli_path(name) or name


def clear_cli_cache(name: Optional[str] = None) -> None:
    if name is None:
        _cli_path_cache.clear()
    else:
        _cli_path_cache.pop(name, None)
