"""In-memory provider for tests and dry runs."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field

from batchtool.scm import provider
from batchtool.scm.models import PullRequest, Repository
from batchtool.scm.provider import Provider, SCMError


def _copy_repo(repo: Repository) -> Repository:
    return dataclasses.replace(repo, labels=list(repo.labels))


def _copy_pr(pr: PullRequest) -> PullRequest:
    return dataclasses.replace(pr, reviewers=list(pr.reviewers))


def _key(repo: str, branch: str) -> str:
    return f"{repo}:{branch}"


@dataclass
class Fake(Provider):
    """A provider keeping repositories and pull requests in memory.

    Errors set for a method name (such as ``"list_repositories"``) are raised
    by that method until cleared.
    """

    project: str = ""
    repositories: list[Repository] = field(default_factory=list)
    pull_requests: dict[str, PullRequest] = field(default_factory=dict)
    errors: dict[str, BaseException] = field(default_factory=dict)

    def _raise_configured(self, method: str) -> None:
        err = self.errors.get(method)
        if err is not None:
            raise err

    def seed_errors(self, errors: dict[str, BaseException]) -> None:
        self.errors.update(errors)

    def list_repositories(self) -> list[Repository]:
        self._raise_configured("list_repositories")
        return [_copy_repo(repo) for repo in self.repositories]

    def get_pull_request(self, repo: str, branch: str) -> PullRequest:
        self._raise_configured("get_pull_request")
        pr = self.pull_requests.get(_key(repo, branch))
        if pr is None:
            raise SCMError(f"pull request not found for {repo}:{branch}")
        return _copy_pr(pr)

    def open_pull_request(self, repo, branch, title, description, reviewers):
        self._raise_configured("open_pull_request")
        key = _key(repo, branch)
        if key in self.pull_requests:
            raise SCMError(f"pull request already exists for {repo}:{branch}")
        pr = PullRequest(
            id=len(self.pull_requests) + 1,
            version=1,
            title=title,
            description=description,
            branch=branch,
            repo=repo,
            reviewers=list(reviewers),
        )
        self.pull_requests[key] = pr
        return _copy_pr(pr)

    def update_pull_request(self, repo, branch, title, description, reviewers, append_reviewers):
        self._raise_configured("update_pull_request")
        pr = self.pull_requests.get(_key(repo, branch))
        if pr is None:
            raise SCMError(f"pull request not found for {repo}:{branch}")
        pr.title = title
        pr.description = description
        pr.version += 1
        if append_reviewers:
            pr.reviewers = list(dict.fromkeys([*pr.reviewers, *reviewers]))
        else:
            pr.reviewers = list(reviewers)
        return _copy_pr(pr)

    def merge_pull_request(self, repo: str, branch: str) -> PullRequest:
        self._raise_configured("merge_pull_request")
        pr = self.pull_requests.pop(_key(repo, branch), None)
        if pr is None:
            raise SCMError(f"pull request not found for {repo}:{branch}")
        return _copy_pr(pr)

    def add_repository(self, repo: Repository) -> None:
        self.repositories.append(_copy_repo(repo))

    def add_repositories(self, *args: Repository) -> None:
        for repo in args:
            self.add_repository(repo)

    def set_error(self, method: str, err: BaseException) -> None:
        self.errors[method] = err

    def clear_error(self, method: str) -> None:
        self.errors.pop(method, None)

    def clear_all_errors(self) -> None:
        self.errors = {}

    def repository_count(self) -> int:
        return len(self.repositories)

    def pull_request_count(self) -> int:
        return len(self.pull_requests)

    def has_pull_request(self, repo: str, branch: str) -> bool:
        return _key(repo, branch) in self.pull_requests

    def clear(self) -> None:
        """Drop all repositories, pull requests and configured errors."""
        self.repositories = []
        self.pull_requests = {}
        self.errors = {}

    def repository_by_name(self, name: str) -> Repository | None:
        for repo in self.repositories:
            if repo.name == name:
                return _copy_repo(repo)
        return None

    def repositories_by_label(self, label: str) -> list[Repository]:
        return [_copy_repo(repo) for repo in self.repositories if label in repo.labels]

    def all_labels(self) -> list[str]:
        return sorted({label for repo in self.repositories for label in repo.labels})


def new(project: str) -> Fake:
    """Create an empty fake provider for ``project``."""
    return Fake(project=project)


def new_fake(project: str, repos: list[Repository]) -> Fake:
    """Create a fake provider seeded with copies of ``repos``."""
    return Fake(project=project, repositories=[_copy_repo(repo) for repo in repos])


def create_test_repositories(project: str) -> list[Repository]:
    """Return five sample repositories with assorted labels."""
    return [
        Repository("repo-1", "Test repository 1", True, project, "main", ["backend", "go", "active"]),
        Repository("repo-2", "Test repository 2", False, project, "master", ["frontend", "javascript", "active"]),
        Repository("repo-3", "Test repository 3", True, project, "main", ["deprecated", "legacy"]),
        Repository("repo-4", "Test repository 4", True, project, "develop", ["poc", "experimental"]),
        Repository(
            "repo-5", "Test repository 5", False, project, "main", ["backend", "python", "active", "microservice"]
        ),
    ]


provider.register("fake", new)