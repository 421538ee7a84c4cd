"""Provider interface, provider registry and shared HTTP helpers."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Any, Callable

import requests

from batchtool.scm.models import PullRequest, Repository


class SCMError(Exception):
    """Raised when a source-control operation fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderNotRegisteredError(SCMError, LookupError):
    """Raised when no provider is registered under the requested name."""


class Provider(ABC):
    """Operations every source-control provider supports."""

    @abstractmethod
    def list_repositories(self) -> list[Repository]:
        """List all repositories in the provider's project."""

    @abstractmethod
    def get_pull_request(self, repo: str, branch: str) -> PullRequest:
        """Return the pull request for ``branch`` in ``repo``."""

    @abstractmethod
    def open_pull_request(
        self,
        repo: str,
        branch: str,
        title: str,
        description: str,
        reviewers: list[str],
    ) -> PullRequest:
        """Open a new pull request in ``repo``."""

    @abstractmethod
    def update_pull_request(
        self,
        repo: str,
        branch: str,
        title: str,
        description: str,
        reviewers: list[str],
        append_reviewers: bool,
    ) -> PullRequest:
        """Update an existing pull request."""

    @abstractmethod
    def merge_pull_request(self, repo: str, branch: str) -> PullRequest:
        """Merge an existing pull request."""


ProviderFactory = Callable[[str], Provider]

_factories: dict[str, ProviderFactory] = {}
_registry_lock = threading.Lock()


def get(name: str, project: str) -> Provider:
    """Build the provider registered as ``name`` for ``project``."""
    with _registry_lock:
        factory = _factories.get(name)
    if factory is None:
        raise ProviderNotRegisteredError(f"SCM provider {name} not registered")
    return factory(project)


def register(name: str, factory: ProviderFactory) -> None:
    """Register a provider factory; an existing registration is kept."""
    with _registry_lock:
        _factories.setdefault(name, factory)


def _send(
    session: requests.Session,
    request: requests.Request | requests.PreparedRequest,
) -> requests.Response:
    if isinstance(request, requests.Request):
        request = session.prepare_request(request)
    try:
        return session.send(request)
    except requests.RequestException as exc:
        raise SCMError(f"failed to execute request: {exc}") from exc


def _raise_for_status(response: requests.Response) -> None:
    if response.status_code < 400:
        return
    raise SCMError(
        f"error {response.status_code}: {response.text}",
        status_code=response.status_code,
    )


def do(
    session: requests.Session,
    request: requests.Request | requests.PreparedRequest,
) -> None:
    """Send ``request`` and raise SCMError on failure or an error status."""
    with _send(session, request) as response:
        _raise_for_status(response)


def do_resp(
    session: requests.Session,
    request: requests.Request | requests.PreparedRequest,
) -> Any:
    """Send ``request`` and return its decoded JSON body."""
    with _send(session, request) as response:
        _raise_for_status(response)
        try:
            return response.json()
        except ValueError as exc:
            raise SCMError(f"failed to unmarshal response: {exc}") from exc