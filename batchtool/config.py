"""Configuration keys, defaults and a layered settings store."""

from __future__ import annotations

import json
import os
import re
import subprocess
import sys
import threading
from datetime import timedelta
from pathlib import Path
from typing import Any, Iterable

import yaml

# Replaced by release tooling; "dev" marks development builds.
VERSION = "dev"

ENV_GOPATH = "gopath"

GIT_USER = "git.user"
GIT_HOST = "git.host"
GIT_PROJECT = "git.project"
GIT_PROVIDER = "git.provider"
GIT_DIRECTORY = "git.directory"
SOURCE_BRANCH = "git.default-branch"

CLONE_SSH_URL_TMPL = "ssh://{user}@{host}/{project}/{name}.git"

SORT_REPOS = "repos.sort"
REPO_ALIASES = "repos.aliases"
UNWANTED_LABELS = "repos.unwanted-labels"
SKIP_UNWANTED = "repos.skip-unwanted"
SUPER_SET_LABEL = "repos.catch-all"
DEFAULT_REVIEWERS = "repos.reviewers"
CATALOG_CACHE_FILE = "repos.cache.filename"
CATALOG_CACHE_TTL = "repos.cache.ttl"

COMMIT_AMEND = "commit.amend"
COMMIT_MESSAGE = "commit.message"

BRANCH = "branch"
REVIEWERS = "reviewers"
AUTH_TOKEN = "token"

TOKEN_LABEL = "repos.tokens.label"
TOKEN_SKIP = "repos.tokens.skip"
TOKEN_FORCED = "repos.tokens.forced"

CHANNEL_BUFFER = "channels.buffer-size"
MAX_CONCURRENCY = "channels.max-concurrency"
WRITE_BACKOFF = "channels.write-backoff"

GITHUB_HOURLY_WRITE_LIMIT = "github.hourly-write-limit"
GITHUB_BACKOFF_SMALL = "github.write-backoff-small"
GITHUB_BACKOFF_LARGE = "github.write-backoff-large"

CONFIG_NAME = "batch-tool"
FIXTURE_NAME = "example-config"
SUPPORTED_EXTENSIONS = ("json", "yaml", "yml")

_MISSING = object()

_TRUE_STRINGS = {"1", "t", "T", "TRUE", "true", "True"}

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


class ConfigError(Exception):
    """Raised when a configuration file cannot be found or read."""


def parse_duration(value: str) -> timedelta:
    """Parse a duration string such as ``"1h30m"`` or ``"500ms"``."""
    text = value.strip()
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration {value!r}")

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            raise ValueError(f"invalid duration {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return timedelta(seconds=sign * total)


def _env_name(key: str) -> str:
    return key.upper().replace(".", "_").replace("-", "_")


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_lower_keys(item) for item in value]
    return value


def _lookup(data: Any, parts: list[str]) -> Any:
    for part in parts:
        if isinstance(data, dict) and part in data:
            data = data[part]
        else:
            return _MISSING
    return data


def _to_string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_to_string(item) for item in value]
    return []


def _to_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    return ""


class Settings:
    """Layered settings: explicit values, environment, config file, defaults."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.reset()

    def reset(self) -> None:
        """Forget every default, value, loaded file and the environment switch."""
        with self._lock:
            self._defaults: dict[str, Any] = {}
            self._overrides: dict[str, Any] = {}
            self._config: dict[str, Any] = {}
            self.config_file_used = ""
            self.automatic_env = False

    def set_default(self, key: str, value: Any) -> None:
        with self._lock:
            self._defaults[key.lower()] = value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._overrides[key.lower()] = value

    def get(self, key: str) -> Any:
        """Return the raw value for ``key``, or None when it is unset."""
        key = key.lower()
        with self._lock:
            if key in self._overrides:
                return self._overrides[key]
            if self.automatic_env:
                env_value = os.environ.get(_env_name(key))
                if env_value:
                    return env_value
            value = _lookup(self._config, key.split("."))
            if value is not _MISSING:
                return value
            return self._defaults.get(key)

    def get_string(self, key: str) -> str:
        return _to_string(self.get(key))

    def get_bool(self, key: str) -> bool:
        value = self.get(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        if isinstance(value, str):
            return value.strip() in _TRUE_STRINGS
        return False

    def get_int(self, key: str) -> int:
        value = self.get(key)
        if isinstance(value, (bool, int, float)):
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return 0
        return 0

    def get_string_list(self, key: str) -> list[str]:
        return _to_string_list(self.get(key))

    def get_string_map_list(self, key: str) -> dict[str, list[str]]:
        value = self.get(key)
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                return {}
        if not isinstance(value, dict):
            return {}
        return {str(name): _to_string_list(items) for name, items in value.items()}

    def get_duration(self, key: str) -> timedelta:
        """Return a duration; bare numbers count as nanoseconds, bad input as zero."""
        value = self.get(key)
        if isinstance(value, timedelta):
            return value
        if isinstance(value, bool) or value is None:
            return timedelta(0)
        if isinstance(value, (int, float)):
            return timedelta(microseconds=value / 1000)
        if isinstance(value, str):
            text = value.strip()
            if text and not any(ch.isalpha() or ch in "µμ" for ch in text):
                text += "ns"
            try:
                return parse_duration(text)
            except ValueError:
                return timedelta(0)
        return timedelta(0)

    def read_in_config(self, path: str | os.PathLike[str]) -> None:
        """Load a JSON or YAML configuration file, replacing any loaded before."""
        path = Path(path)
        extension = path.suffix.lower().lstrip(".")
        if extension not in SUPPORTED_EXTENSIONS:
            raise ConfigError(f"unsupported config type {extension!r}")
        text = path.read_text(encoding="utf-8")
        try:
            data = json.loads(text) if extension == "json" else yaml.safe_load(text)
        except (ValueError, yaml.YAMLError) as exc:
            raise ConfigError(f"failed to parse {path}: {exc}") from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"config file {path} does not hold a mapping")
        with self._lock:
            self._config = _lower_keys(data)
            self.config_file_used = str(path)


settings = Settings()


def _find_config(name: str, directories: Iterable[Path]) -> Path | None:
    for directory in directories:
        for extension in SUPPORTED_EXTENSIONS:
            candidate = directory / f"{name}.{extension}"
            if candidate.is_file():
                return candidate
    return None


def _user_config_dir() -> str | None:
    if sys.platform.startswith("win"):
        return os.environ.get("APPDATA") or None
    home = os.environ.get("HOME")
    if sys.platform == "darwin":
        return os.path.join(home, "Library", "Application Support") if home else None
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return xdg if os.path.isabs(xdg) else None
    return os.path.join(home, ".config") if home else None


def _search_directories() -> list[Path]:
    directories = [Path(".")]
    if user_config := _user_config_dir():
        directories.append(Path(user_config))
    # A command-line tool on macOS is better served by XDG than by Application Support.
    if xdg_config_home := os.environ.get("XDG_CONFIG_HOME"):
        directories.append(Path(xdg_config_home))
    else:
        try:
            directories.append(Path.home() / ".config")
        except RuntimeError:
            pass
    if sys.argv and sys.argv[0]:
        directories.append(Path(sys.argv[0]).resolve().parent)
    return [Path(os.path.abspath(directory)) for directory in directories]


def _initialize(store: Settings) -> None:
    store.set_default(GIT_USER, "git")
    store.set_default(GIT_HOST, "github.com")
    store.set_default(GIT_PROVIDER, "github")
    store.set_default(SOURCE_BRANCH, "main")
    store.set_default(SORT_REPOS, True)

    store.set_default(SKIP_UNWANTED, True)
    store.set_default(UNWANTED_LABELS, ["deprecated", "poc"])
    store.set_default(SUPER_SET_LABEL, "all")

    store.set_default(CATALOG_CACHE_FILE, ".catalog")
    store.set_default(CATALOG_CACHE_TTL, "24h")

    store.set_default(CHANNEL_BUFFER, 100)
    store.set_default(MAX_CONCURRENCY, os.cpu_count() or 1)
    store.set_default(WRITE_BACKOFF, "1s")

    # 1s stays under GitHub's per-minute write limit, 8s under the hourly one.
    store.set_default(GITHUB_HOURLY_WRITE_LIMIT, 500)
    store.set_default(GITHUB_BACKOFF_SMALL, "1s")
    store.set_default(GITHUB_BACKOFF_LARGE, "8s")

    store.set_default(DEFAULT_REVIEWERS, {})
    store.set_default(REPO_ALIASES, {})

    store.set_default(GIT_DIRECTORY, default_gitdir())

    store.set_default(TOKEN_LABEL, "~")
    store.set_default(TOKEN_SKIP, "!")
    store.set_default(TOKEN_FORCED, "+")


def init(cfg_file: str | None = None) -> None:
    """Apply defaults, enable environment lookup and load a config file if one is found."""
    _initialize(settings)
    settings.automatic_env = True

    path: Path | None
    if cfg_file:
        path = Path(cfg_file)
    else:
        path = _find_config(CONFIG_NAME, _search_directories())
    if path is None:
        return

    try:
        settings.read_in_config(path)
    except (ConfigError, OSError):
        return
    print(f"Using config file: {settings.config_file_used}\n")


def load_fixture(directory: str | os.PathLike[str]) -> None:
    """Reset the settings and load ``example-config`` from ``directory``."""
    settings.reset()
    _initialize(settings)
    path = _find_config(FIXTURE_NAME, [Path(directory)])
    if path is None:
        raise ConfigError(f'Config File "{FIXTURE_NAME}" Not Found in {directory}')
    settings.read_in_config(path)


def default_gitdir() -> str:
    """Return $GOPATH/src, asking the go tool when unset, else the working directory."""
    gopath = os.environ.get("GOPATH", "")
    if not gopath:
        try:
            result = subprocess.run(
                ["go", "env", "GOPATH"],
                capture_output=True,
                text=True,
                timeout=5,
                check=True,
            )
        except (OSError, subprocess.SubprocessError):
            return os.getcwd()
        gopath = result.stdout.strip()
    return os.path.join(gopath, "src")