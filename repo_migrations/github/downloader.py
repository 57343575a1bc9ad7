"""GitHub downloader using PyGitHub."""

import logging
from collections.abc import Callable
from typing import Any, TypeVar
from urllib.parse import urlparse

from github import Auth, Github
from github.GithubException import (
    BadCredentialsException,
    GithubException,
    RateLimitExceededException,
    UnknownObjectException,
)
from github.Repository import Repository as GithubRepository

from ..migration.downloader import Downloader, DownloaderFactory, split_clone_addr
from ..migration.errors import (
    AuthFailureError,
    NotFoundError,
    RateLimitedError,
    RemoteError,
)
from ..migration.models import (
    Comment,
    Issue,
    Label,
    Milestone,
    PullRequest,
    Reaction,
    Release,
    Repository,
    Review,
)
from ..migration.options import (
    DEFAULT_MAX_PER_PAGE,
    GitServiceType,
    MigrateOptions,
    resolve_credentials,
)
from ..migration.pagination import Page, PageRequest, Paginator, clamp_per_page, page_context
from ..migration.rate_limit import RateLimitGovernor
from .mapper import (
    convert_comment,
    convert_issue,
    convert_label,
    convert_milestone,
    convert_pull_request,
    convert_reaction,
    convert_release,
    convert_repository,
    convert_review,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
ItemT = TypeVar("ItemT")

GITHUB_API_URL = "https://api.github.com"


def api_base_url(base_url: str) -> str:
    """Return the REST API root for a GitHub or GitHub Enterprise server.

    Example:
        >>> api_base_url("https://github.com")
        "https://api.github.com"
        >>> api_base_url("https://git.example.com")
        "https://git.example.com/api/v3"
    """
    if urlparse(base_url).hostname in ("github.com", "www.github.com"):
        return GITHUB_API_URL
    return f"{base_url.rstrip('/')}/api/v3"


class GitHubDownloader(Downloader):
    """Downloader for one GitHub repository.

    Every PyGithub call goes through ``_call``, which asks the governor before
    the request, maps PyGithub exceptions onto the migration errors and feeds
    the rate-limit headers of the response back to the governor.
    """

    service_name = "github"

    def __init__(
        self,
        base_url: str,
        repo_owner: str,
        repo_name: str,
        token: str = "",
        username: str = "",
        password: str = "",
        max_per_page: int = DEFAULT_MAX_PER_PAGE,
        skip_reactions: bool = False,
        governor: RateLimitGovernor | None = None,
    ) -> None:
        """Initialize the downloader.

        Args:
            base_url: Server URL, e.g. https://github.com
            repo_owner: Owner login
            repo_name: Repository name
            token: Personal access token, preferred over username/password
            username: Basic auth user name
            password: Basic auth password
            max_per_page: Largest page size requested from the server
            skip_reactions: Do not fetch reactions of issues, comments and
                pull requests
            governor: Rate-limit governor for the connection

        Raises:
            ConfigError: If neither a token nor username/password is given
        """
        super().__init__(base_url, repo_owner, repo_name)
        credentials = resolve_credentials(token, username, password)
        if credentials.uses_token:
            auth: Auth.Auth = Auth.Token(credentials.token)
        else:
            auth = Auth.Login(credentials.username, credentials.password)

        self.max_per_page = max_per_page
        self.skip_reactions = skip_reactions
        self.governor = governor or RateLimitGovernor()
        # Quota waits are left to the governor
        self.github = Github(
            auth=auth,
            base_url=api_base_url(self.base_url),
            per_page=max_per_page,
            retry=None,
        )
        self._repo: GithubRepository | None = None
        # Listing pages of pull requests only, shifting later issue pages forward
        self._skipped_issue_pages = 0

    def close(self) -> None:
        self.github.close()

    def _call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run one PyGithub call under the rate-limit governor.

        A rate-limited call is waited out once and retried.

        Raises:
            AuthFailureError: On rejected credentials
            NotFoundError: On 404
            RateLimitedError: When still rate limited after the wait
            RemoteError: On any other GitHub or transport failure
        """
        for attempt in range(2):
            self.governor.wait()
            try:
                result = func(*args, **kwargs)
            except RateLimitExceededException as e:
                self.governor.observe_throttled(e.headers or {})
                if attempt == 0:
                    logger.warning("GitHub rate limit exceeded, waiting for quota")
                    continue
                raise RateLimitedError(self.governor.reset_at) from e
            except BadCredentialsException as e:
                raise AuthFailureError(f"GitHub rejected credentials: {e}") from e
            except UnknownObjectException as e:
                raise NotFoundError(f"GitHub resource not found: {e}") from e
            except GithubException as e:
                if e.status == 401:
                    raise AuthFailureError(f"GitHub rejected credentials: {e}") from e
                raise RemoteError(f"GitHub API error: {e}", status_code=e.status) from e
            except OSError as e:
                raise RemoteError(f"HTTP error talking to GitHub: {e}") from e

            self._observe_rate_limit()
            return result

        raise RateLimitedError(self.governor.reset_at)

    def _observe_rate_limit(self) -> None:
        requester = self.github.requester
        remaining, _limit = requester.rate_limiting
        # -1 until a response carried rate-limit headers
        if remaining >= 0:
            self.governor.observe(remaining, float(requester.rate_limiting_resettime))

    def _repository(self) -> GithubRepository:
        if self._repo is None:
            try:
                self._repo = self._call(
                    self.github.get_repo, f"{self.repo_owner}/{self.repo_name}"
                )
            except NotFoundError as e:
                raise NotFoundError(
                    f"repository {self.repo_owner}/{self.repo_name} not found",
                    "repository",
                ) from e
        return self._repo

    def _collect(
        self,
        kind: str,
        list_items: Callable[[], Any],
        convert: Callable[[ItemT], T],
    ) -> list[T]:
        """Fetch every page of a PyGithub paginated list."""

        def fetch(request: PageRequest) -> Page[T]:
            self.github.per_page = request.per_page
            items = self._call(list_items().get_page, request.index - 1)
            return Page(
                [convert(item) for item in items],
                is_end=len(items) < request.per_page,
            )

        return Paginator(
            kind, fetch, per_page=self.max_per_page, max_per_page=self.max_per_page
        ).collect()

    def _reactions(self, item: Any) -> list[Reaction]:
        if self.skip_reactions:
            return []
        return self._call(
            lambda: [convert_reaction(reaction) for reaction in item.get_reactions()]
        )

    def get_repo_info(self) -> Repository:
        return convert_repository(self._repository())

    def get_topics(self) -> list[str]:
        return self._call(self._repository().get_topics)

    def get_milestones(self) -> list[Milestone]:
        repo = self._repository()
        return self._collect(
            "milestones", lambda: repo.get_milestones(state="all"), convert_milestone
        )

    def get_labels(self) -> list[Label]:
        repo = self._repository()
        return self._collect("labels", repo.get_labels, convert_label)

    def get_releases(self) -> list[Release]:
        repo = self._repository()
        return self._collect("releases", repo.get_releases, convert_release)

    def get_issues(self, page: int, per_page: int) -> tuple[list[Issue], bool]:
        """Get one page of issues, oldest first.

        GitHub lists pull requests among issues; they are dropped from the
        page, so a page can hold fewer issues than requested without being
        the last one. A listing page holding only pull requests is skipped in
        favor of the next, and later pages shift along with it.
        """
        per_page = clamp_per_page(per_page, self.max_per_page)
        if page == 1:
            self._skipped_issue_pages = 0
        with page_context("issues", page):
            repo = self._repository()
            self.github.per_page = per_page
            listing = repo.get_issues(state="all", sort="created", direction="asc")
            while True:
                index = page - 1 + self._skipped_issue_pages
                items = self._call(listing.get_page, index)
                issues = [
                    convert_issue(item, self._reactions(item))
                    for item in items
                    if item.pull_request is None
                ]
                is_end = len(items) < per_page
                if issues or is_end:
                    return issues, is_end

                self._skipped_issue_pages += 1

    def get_comments(self, issue_number: int) -> list[Comment]:
        issue = self._call(self._repository().get_issue, issue_number)
        return self._collect(
            "comments",
            issue.get_comments,
            lambda comment: convert_comment(
                comment, issue_number, self._reactions(comment)
            ),
        )

    def get_pull_requests(
        self, page: int, per_page: int
    ) -> tuple[list[PullRequest], bool]:
        """Get one page of pull requests, oldest first.

        Lock state and reactions live on the issue side of a pull request,
        which costs one more request per pull request; it is skipped along
        with reactions.
        """
        per_page = clamp_per_page(per_page, self.max_per_page)
        with page_context("pull_requests", page):
            repo = self._repository()
            self.github.per_page = per_page
            items = self._call(
                repo.get_pulls(state="all", sort="created", direction="asc").get_page,
                page - 1,
            )
            prs = []
            for item in items:
                if self.skip_reactions:
                    prs.append(convert_pull_request(item))
                    continue
                issue = self._call(item.as_issue)
                prs.append(
                    convert_pull_request(
                        item, self._reactions(issue), is_locked=bool(issue.locked)
                    )
                )
        return prs, len(items) < per_page

    def get_reviews(self, pr_number: int) -> list[Review]:
        pull = self._call(self._repository().get_pull, pr_number)
        return self._collect(
            "reviews",
            pull.get_reviews,
            lambda review: convert_review(review, pr_number),
        )


class GitHubDownloaderFactory(DownloaderFactory):
    """Creates GitHub downloaders from migration options."""

    git_service_type = GitServiceType.GITHUB

    def new(self, options: MigrateOptions) -> GitHubDownloader:
        base_url, owner, name = split_clone_addr(options.clone_addr)
        logger.debug("Creating GitHub downloader for %s/%s at %s", owner, name, base_url)
        return GitHubDownloader(
            base_url,
            owner,
            name,
            token=options.auth_token,
            username=options.auth_username,
            password=options.auth_password,
            max_per_page=options.max_per_page,
            skip_reactions=options.skip_reactions,
            governor=RateLimitGovernor(
                options.rate_limit_threshold, options.rate_limit_max_wait
            ),
        )
