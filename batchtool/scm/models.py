"""Provider-neutral repository and pull request records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Repository:
    """A repository as reported by a source-control provider."""

    name: str = ""
    description: str = ""
    public: bool = False
    project: str = ""
    default_branch: str = ""
    labels: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form; labels are left out when there are none."""
        data: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "public": self.public,
            "project": self.project,
            "default_branch": self.default_branch,
        }
        if self.labels:
            data["labels"] = list(self.labels)
        return data


@dataclass
class PullRequest:
    """A pull request as reported by a source-control provider."""

    title: str = ""
    description: str = ""
    branch: str = ""
    repo: str = ""
    reviewers: list[str] = field(default_factory=list)
    id: int = 0
    number: int = 0
    version: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form; a zero version is left out."""
        data: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "branch": self.branch,
            "repo": self.repo,
            "reviewers": list(self.reviewers),
            "id": self.id,
            "number": self.number,
        }
        if self.version:
            data["version"] = self.version
        return data