"""Canonical model and downloader contract for repository migrations."""

from .downloader import (
    Downloader,
    DownloaderFactory,
    new_downloader,
    register_downloader_factory,
    registered_services,
    split_clone_addr,
)
from .errors import (
    AuthFailureError,
    ConfigError,
    MappingError,
    MigrationError,
    NotFoundError,
    RateLimitedError,
    RemoteError,
    UnsupportedError,
)
from .models import (
    Comment,
    Issue,
    Label,
    Milestone,
    PullRequest,
    PullRequestBranch,
    Reaction,
    Release,
    Repository,
    Review,
    build_model,
)
from .options import GitServiceType, MigrateOptions, resolve_credentials
from .pagination import Page, PageRequest, Paginator, clamp_per_page, page_context
from .rate_limit import RateLimitGovernor

__all__ = [
    "AuthFailureError",
    "Comment",
    "ConfigError",
    "Downloader",
    "DownloaderFactory",
    "GitServiceType",
    "Issue",
    "Label",
    "MappingError",
    "MigrateOptions",
    "MigrationError",
    "Milestone",
    "NotFoundError",
    "Page",
    "PageRequest",
    "Paginator",
    "PullRequest",
    "PullRequestBranch",
    "RateLimitGovernor",
    "RateLimitedError",
    "Reaction",
    "Release",
    "RemoteError",
    "Repository",
    "Review",
    "UnsupportedError",
    "build_model",
    "clamp_per_page",
    "new_downloader",
    "page_context",
    "register_downloader_factory",
    "registered_services",
    "resolve_credentials",
    "split_clone_addr",
]
