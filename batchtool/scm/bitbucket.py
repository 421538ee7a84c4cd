"""Provider for the Bitbucket Server REST API (version 1.0)."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.parse import quote, urlencode

import requests

from batchtool import config
from batchtool.config import settings
from batchtool.scm import provider
from batchtool.scm.models import PullRequest, Repository
from batchtool.scm.provider import Provider, SCMError, do_resp

API_ROOT = "/rest/api/1.0/projects"


@dataclass
class _Ref:
    """A branch reference within a repository of a project."""

    id: str = ""
    slug: str = ""
    project: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "repository": {"slug": self.slug, "project": {"key": self.project}},
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any] | None) -> _Ref:
        data = data or {}
        repository = data.get("repository") or {}
        project = repository.get("project") or {}
        return _Ref(
            id=data.get("id") or "",
            slug=repository.get("slug") or "",
            project=project.get("key") or "",
        )


@dataclass
class PullRequestPayload:
    """A pull request in the shape the Bitbucket API sends and accepts."""

    id: int | float = 0
    version: int | float = 0
    title: str = ""
    description: str = ""
    reviewers: list[str] = field(default_factory=list)
    from_ref: _Ref = field(default_factory=_Ref)
    to_ref: _Ref = field(default_factory=_Ref)

    def reviewer_names(self) -> list[str]:
        return list(self.reviewers)

    def add_reviewers(self, reviewers: list[str]) -> None:
        self.reviewers.extend(reviewers)

    def set_reviewers(self, reviewers: list[str]) -> None:
        self.reviewers = list(reviewers)

    def to_dict(self) -> dict[str, Any]:
        """Return the API form; a zero id or version is left out."""
        data: dict[str, Any] = {}
        if self.id:
            data["id"] = self.id
        if self.version:
            data["version"] = self.version
        data.update(
            title=self.title,
            description=self.description,
            reviewers=[{"user": {"name": name}} for name in self.reviewers],
            fromRef=self.from_ref.to_dict(),
            toRef=self.to_ref.to_dict(),
        )
        return data

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> PullRequestPayload:
        reviewers = [
            ((item or {}).get("user") or {}).get("name") or ""
            for item in data.get("reviewers") or []
        ]
        return PullRequestPayload(
            id=data.get("id") or 0,
            version=data.get("version") or 0,
            title=data.get("title") or "",
            description=data.get("description") or "",
            reviewers=reviewers,
            from_ref=_Ref.from_dict(data.get("fromRef")),
            to_ref=_Ref.from_dict(data.get("toRef")),
        )


def gen_pr(name: str, title: str, description: str, reviewers: list[str]) -> str:
    """Return the JSON body that opens a pull request for repository ``name``."""
    project = settings.get_string(config.GIT_PROJECT)
    payload = PullRequestPayload(
        title=title,
        description=description,
        reviewers=list(reviewers),
        from_ref=_Ref(f"refs/heads/{settings.get_string(config.BRANCH)}", name, project),
        to_ref=_Ref(f"refs/heads/{settings.get_string(config.SOURCE_BRANCH)}", name, project),
    )
    return json.dumps(payload.to_dict())


def parse_pr(resp: PullRequestPayload) -> PullRequest:
    """Convert an API pull request into the provider-neutral record."""
    return PullRequest(
        id=int(resp.id),
        number=int(resp.id),
        title=resp.title,
        description=resp.description,
        reviewers=resp.reviewer_names(),
    )


def parse_repository_list(data: Mapping[str, Any]) -> list[Repository]:
    """Convert a repository list response; labels and default branch are left empty."""
    repositories = []
    for item in data.get("values") or []:
        project = item.get("project") or {}
        repositories.append(
            Repository(
                name=item.get("name") or "",
                description=item.get("description") or "",
                public=bool(item.get("public", False)),
                project=project.get("key") or "",
            )
        )
    return repositories


def parse_labels(data: Mapping[str, Any]) -> list[str]:
    """Flatten a label list response into label names."""
    return [(item or {}).get("name") or "" for item in data.get("values") or []]


def parse_default_branch(data: Mapping[str, Any]) -> str:
    """Return the display name of a default-branch response."""
    return data.get("displayId") or ""


class Bitbucket(Provider):
    """Provider talking to a Bitbucket Server instance."""

    def __init__(
        self,
        project: str,
        host: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.project = project
        self.host = settings.get_string(config.GIT_HOST) if host is None else host
        self.session = session if session is not None else requests.Session()

    def url(self, repo: str, query_params: Mapping[str, str] | None = None, *args: str) -> str:
        """Build the API URL for the project, optionally a repository and sub-path."""
        segments = [self.project]
        if repo:
            segments += ["repos", repo]
        segments += args
        path = API_ROOT + "".join(
            "/" + quote(segment.strip("/"), safe="/") for segment in segments if segment.strip("/")
        )
        result = f"https://{self.host}{path}"
        if query_params:
            result += "?" + urlencode(sorted(query_params.items()))
        return result

    def _call(self, method: str, url: str, body: str | None = None) -> Any:
        headers = {"Authorization": "Bearer " + settings.get_string(config.AUTH_TOKEN)}
        if body is not None:
            headers["Content-Type"] = "application/json"
        request = requests.Request(method, url, headers=headers, data=body)
        return do_resp(self.session, request)

    def list_repositories(self) -> list[Repository]:
        data = self._call("GET", self.url("", {"limit": "1000"}, "repos"))
        repositories = parse_repository_list(data)
        for repo in repositories:
            repo.labels = self._labels(repo.name)
            try:
                repo.default_branch = self._default_branch(repo.name)
            except SCMError as exc:
                fallback = settings.get_string(config.SOURCE_BRANCH)
                print(
                    f"Error fetching default branch for {repo.name} - "
                    f"falling back on configured default '{fallback}': {exc}"
                )
                repo.default_branch = fallback
        return repositories

    def _labels(self, repo: str) -> list[str]:
        return parse_labels(self._call("GET", self.url(repo, {"limit": "100"}, "labels")))

    def _default_branch(self, repo: str) -> str:
        return parse_default_branch(self._call("GET", self.url(repo, None, "default-branch")))

    def _get_pull_request(self, repo: str, branch: str) -> PullRequestPayload:
        params = {"direction": "outgoing", "at": "refs/heads/" + branch}
        try:
            data = self._call("GET", self.url(repo, params, "pull-requests"))
        except SCMError as exc:
            raise SCMError(
                f"failed to get pull requests for {repo}/{branch}: {exc}", exc.status_code
            ) from exc
        values = data.get("values") or []
        if not values:
            raise SCMError(f"no pull requests found for {repo}/{branch}")
        # The first result is the most recent.
        return PullRequestPayload.from_dict(values[0])

    def get_pull_request(self, repo: str, branch: str) -> PullRequest:
        return parse_pr(self._get_pull_request(repo, branch))

    def open_pull_request(self, repo, branch, title, description, reviewers):
        title = title or branch
        body = gen_pr(repo, title, description, reviewers)
        try:
            data = self._call("POST", self.url(repo, None, "pull-requests"), body)
        except SCMError as exc:
            raise SCMError(f"failed to open pull request: {exc}", exc.status_code) from exc

        # The response only carries the id, so fill in what was sent.
        pr = PullRequestPayload.from_dict(data or {})
        pr.title = title
        pr.description = description
        pr.from_ref = _Ref(f"refs/heads/{branch}", repo, self.project)
        pr.set_reviewers(reviewers)
        return parse_pr(pr)

    def update_pull_request(self, repo, branch, title, description, reviewers, append_reviewers):
        if not title and not description and not reviewers:
            raise SCMError("no updates provided")

        pr = self._get_pull_request(repo, branch)
        if title:
            pr.title = title
        if description:
            pr.description = description
        if not reviewers:
            if append_reviewers:
                pr.add_reviewers(reviewers)
            elif settings.get_string_list(config.REVIEWERS):
                pr.set_reviewers(reviewers)

        url = self.url(repo, None, "pull-requests", str(int(pr.id)))
        try:
            data = self._call("PUT", url, json.dumps(pr.to_dict()))
        except SCMError as exc:
            raise SCMError(f"failed to update pull request: {exc}", exc.status_code) from exc
        return parse_pr(PullRequestPayload.from_dict(data or {}))

    def merge_pull_request(self, repo: str, branch: str) -> PullRequest:
        pr = self.get_pull_request(repo, branch)
        url = self.url(repo, {"version": str(pr.version)}, "pull-requests", str(pr.id), "merge")
        try:
            self._call("POST", url)
        except SCMError as exc:
            raise SCMError(f"failed to merge pull request: {exc}", exc.status_code) from exc
        return pr


def new(project: str) -> Bitbucket:
    """Create a Bitbucket provider for ``project`` using the configured host."""
    return Bitbucket(project)


provider.register("bitbucket", new)