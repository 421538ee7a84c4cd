"""Helpers for resolving repositories, reviewers and branches from settings."""

from __future__ import annotations

import os
import subprocess

from batchtool import config
from batchtool.config import settings


def validate_required_config(*args: str) -> None:
    """Raise ConfigError for the first key that has no value."""
    for key in args:
        if settings.get_string(key) == "":
            raise config.ConfigError(f"{key} is required - set as flag or env")


def lookup_reviewers(name: str) -> list[str]:
    """Return the explicit reviewers, else the configured defaults for ``name``."""
    reviewers = settings.get_string_list(config.REVIEWERS)
    if reviewers:
        return reviewers
    return settings.get_string_map_list(config.DEFAULT_REVIEWERS).get(name, [])


def parse_repo(repo: str) -> tuple[str, str, str]:
    """Split a repository identifier into ``(host, project, name)``."""
    parts = repo.strip("/ ").split("/")
    name = parts[-1]

    if len(parts) > 1:
        project = parts[-2]
    else:
        project = settings.get_string(config.GIT_PROJECT)

    if len(parts) > 2:
        host = "/".join(parts[: len(parts) - 3])
    else:
        host = settings.get_string(config.GIT_HOST)

    return host, project, name


def repo_path(repo: str) -> str:
    """Return the absolute local path of the repository."""
    host, project, name = parse_repo(repo)
    return os.path.abspath(
        os.path.join(settings.get_string(config.GIT_DIRECTORY), host, project, name)
    )


def repo_url(repo: str) -> str:
    """Return the SSH clone URL of the repository."""
    host, project, name = parse_repo(repo)
    return config.CLONE_SSH_URL_TMPL.format(
        user=settings.get_string(config.GIT_USER),
        host=host,
        project=project,
        name=name,
    )


def _current_branch(path: str) -> str:
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--abbrev-ref", "HEAD"],
            cwd=path,
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise RuntimeError(f"failed to read current branch in {path}: {exc}") from exc
    return result.stdout.strip()


def lookup_branch(name: str) -> str:
    """Return the configured branch, reading and remembering the checked-out one if unset."""
    branch = settings.get_string(config.BRANCH)
    if not branch:
        branch = _current_branch(repo_path(name))
        settings.set(config.BRANCH, branch)
    return branch


def validate_branch(repo: str) -> None:
    """Raise ValueError when the repository is on the source branch."""
    branch = _current_branch(repo_path(repo))
    if branch == settings.get_string(config.SOURCE_BRANCH).strip():
        raise ValueError(f"skipping operation - {branch} is the source branch")