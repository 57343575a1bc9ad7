"""Downloader contract shared by every remote service.

``Downloader`` is the facade the import pipeline talks to. Every capability
defaults to "absent": full-set and optional fetchers raise ``UnsupportedError``
and ``get_topics`` returns an empty list, so a service variant only overrides
what its remote API offers.
"""

import logging
from abc import ABC, abstractmethod
from types import TracebackType
from urllib.parse import urlparse

from .errors import ConfigError, UnsupportedError
from .models import (
    Comment,
    Issue,
    Label,
    Milestone,
    PullRequest,
    Release,
    Repository,
    Review,
)
from .options import GitServiceType, MigrateOptions

logger = logging.getLogger(__name__)


class Downloader:
    """Base downloader bound to one ``owner/name`` on one remote service."""

    service_name = "unknown"

    def __init__(self, base_url: str, repo_owner: str, repo_name: str) -> None:
        self.base_url = base_url.rstrip("/")
        self.repo_owner = repo_owner
        self.repo_name = repo_name

    def __str__(self) -> str:
        return (
            f"migration from {self.service_name} server {self.base_url} "
            f"{self.repo_owner}/{self.repo_name}"
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.base_url} {self.repo_owner}/{self.repo_name}>"

    def __enter__(self) -> "Downloader":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Release connection handles."""

    def get_repo_info(self) -> Repository:
        raise UnsupportedError("repository info is not supported", "repository")

    def get_topics(self) -> list[str]:
        """Return repository topics; services without topics return []."""
        logger.debug("%r has no topic metadata", self)
        return []

    def get_milestones(self) -> list[Milestone]:
        raise UnsupportedError("milestones are not supported", "milestones")

    def get_labels(self) -> list[Label]:
        raise UnsupportedError("labels are not supported", "labels")

    def get_releases(self) -> list[Release]:
        raise UnsupportedError("releases are not supported", "releases")

    def get_issues(self, page: int, per_page: int) -> tuple[list[Issue], bool]:
        """Return one page of issues and whether it is the last one."""
        raise UnsupportedError("issues are not supported", "issues")

    def get_comments(self, issue_number: int) -> list[Comment]:
        raise UnsupportedError("comments are not supported", "comments")

    def get_pull_requests(
        self, page: int, per_page: int
    ) -> tuple[list[PullRequest], bool]:
        """Return one page of pull requests and whether it is the last one."""
        raise UnsupportedError("pull requests are not supported", "pull_requests")

    def get_reviews(self, pr_number: int) -> list[Review]:
        raise UnsupportedError("reviews are not supported", "reviews")


class DownloaderFactory(ABC):
    """Creates downloaders for one service type."""

    git_service_type: GitServiceType

    @abstractmethod
    def new(self, options: MigrateOptions) -> Downloader:
        """Create a downloader for the repository named by ``options.clone_addr``."""


def split_clone_addr(clone_addr: str) -> tuple[str, str, str]:
    """Split a clone address into (base URL, owner, name).

    Example:
        >>> split_clone_addr("https://dev.azure.com/go-gitea/test_repo.git")
        ("https://dev.azure.com", "go-gitea", "test_repo")

    Raises:
        ConfigError: If the address has no scheme, host, owner and name
    """
    parsed = urlparse(clone_addr)
    fields = [field for field in parsed.path.split("/") if field]
    if not parsed.scheme or not parsed.hostname or len(fields) < 2:
        raise ConfigError(f"invalid clone address: {clone_addr}")

    host = parsed.hostname
    if parsed.port:
        host = f"{host}:{parsed.port}"
    owner = fields[0]
    name = fields[1].removesuffix(".git")
    return f"{parsed.scheme}://{host}", owner, name


_factories: dict[GitServiceType, DownloaderFactory] = {}


def register_downloader_factory(factory: DownloaderFactory) -> None:
    """Register a factory, replacing any previous one for the same service."""
    _factories[factory.git_service_type] = factory


def registered_services() -> list[GitServiceType]:
    return list(_factories)


def new_downloader(options: MigrateOptions) -> Downloader:
    """Create a downloader through the factory registered for the service.

    Raises:
        ConfigError: If no factory is registered for ``options.service``
    """
    factory = _factories.get(options.service)
    if factory is None:
        raise ConfigError(f"no downloader registered for service {options.service.value}")
    return factory.new(options)
