"""Azure DevOps downloader.

A team project is migrated as a repository: its iterations become
milestones, its work item tags become labels, its work items become issues
and its default git repository provides pull requests.
"""

import logging
from typing import Any

import httpx

from ..migration.downloader import Downloader, DownloaderFactory, split_clone_addr
from ..migration.errors import NotFoundError
from ..migration.models import (
    Comment,
    Issue,
    Label,
    Milestone,
    PullRequest,
    Repository,
)
from ..migration.options import (
    DEFAULT_MAX_PER_PAGE,
    GitServiceType,
    MigrateOptions,
    resolve_credentials,
)
from ..migration.pagination import (
    Page,
    PageRequest,
    Paginator,
    clamp_per_page,
    page_context,
)
from ..migration.rate_limit import RateLimitGovernor
from .client import AzureDevOpsClient
from .mapper import (
    map_comment,
    map_issue,
    map_label,
    map_milestone,
    map_pull_request,
    map_repository,
    project_web_url,
)

logger = logging.getLogger(__name__)

# Work item ids of the project in creation order
WORK_ITEM_QUERY = (
    "SELECT [System.Id] FROM WorkItems "
    "WHERE [System.TeamProject] = @project ORDER BY [System.Id] ASC"
)

TAGS_API_VERSION = "7.1-preview.1"
COMMENTS_API_VERSION = "7.1-preview.4"

# Largest page size the comments endpoint accepts
MAX_COMMENTS_PER_PAGE = 200


class AzureDevOpsDownloader(Downloader):
    """Downloader for one team project on Azure DevOps Services or Server.

    Example:
        >>> with AzureDevOpsDownloader(
        ...     "https://dev.azure.com", "go-gitea", "test_repo", token="pat"
        ... ) as downloader:
        ...     issues, is_end = downloader.get_issues(1, 10)
    """

    service_name = "azure devops"

    def __init__(
        self,
        base_url: str,
        repo_owner: str,
        repo_name: str,
        token: str = "",
        username: str = "",
        password: str = "",
        max_per_page: int = DEFAULT_MAX_PER_PAGE,
        governor: RateLimitGovernor | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the downloader.

        Args:
            base_url: Server URL, e.g. https://dev.azure.com
            repo_owner: Organization (or collection) name
            repo_name: Team project name; its default git repository shares it
            token: Personal access token, preferred over username/password
            username: Basic auth user name
            password: Basic auth password
            max_per_page: Largest page size requested from the server
            governor: Rate-limit governor for the connection
            transport: Optional httpx transport, used by tests

        Raises:
            ConfigError: If neither a token nor username/password is given
        """
        super().__init__(base_url, repo_owner, repo_name)
        credentials = resolve_credentials(token, username, password)
        self.max_per_page = max_per_page
        self.client = AzureDevOpsClient(
            self.base_url, repo_owner, credentials, governor, transport
        )
        self.web_url = project_web_url(self.base_url, repo_owner, repo_name)
        # Ids of wholly deleted issue slices, shifting later pages forward
        self._skipped_ids = 0

    def close(self) -> None:
        self.client.close()

    @property
    def _project(self) -> str:
        return f"/{self.repo_name}"

    @property
    def _git_repository(self) -> str:
        return f"{self._project}/_apis/git/repositories/{self.repo_name}"

    def get_repo_info(self) -> Repository:
        """Get the team project and its default git repository.

        Raises:
            NotFoundError: If the project does not exist
        """
        try:
            project = self.client.get(f"/_apis/projects/{self.repo_name}")
        except NotFoundError as e:
            raise NotFoundError(
                f"project {self.repo_owner}/{self.repo_name} not found", "repository"
            ) from e

        try:
            git_repository: dict[str, Any] | None = self.client.get(self._git_repository)
        except NotFoundError:
            logger.info("Project %s has no git repository of the same name", self.repo_name)
            git_repository = None

        return map_repository(project, git_repository, self.repo_owner, self.base_url)

    def get_labels(self) -> list[Label]:
        """Get every work item tag defined in the project."""

        def fetch(request: PageRequest) -> Page[Label]:
            data = self.client.get(
                f"{self._project}/_apis/wit/tags", api_version=TAGS_API_VERSION
            )
            return Page([map_label(tag) for tag in data.get("value", [])], is_end=True)

        return Paginator("labels", fetch, max_per_page=self.max_per_page).collect()

    def get_milestones(self) -> list[Milestone]:
        """Get every iteration of the project's default team."""

        def fetch(request: PageRequest) -> Page[Milestone]:
            data = self.client.get(f"{self._project}/_apis/work/teamsettings/iterations")
            return Page(
                [map_milestone(iteration) for iteration in data.get("value", [])],
                is_end=True,
            )

        return Paginator("milestones", fetch, max_per_page=self.max_per_page).collect()

    def get_issues(self, page: int, per_page: int) -> tuple[list[Issue], bool]:
        """Get one page of work items in id order.

        The WIQL query returns every id of the project; the requested page is
        sliced from it and its work items are fetched in one batch. Work items
        deleted since the query ran drop out of the batch. A slice left empty
        that way is skipped, and so are its ids on every later page, so a page
        is only empty at the end of the results.

        Args:
            page: 1-based page number
            per_page: Requested page size, clamped to ``max_per_page``

        Returns:
            Tuple of (issues, whether this is the last page)
        """
        request = PageRequest(page, clamp_per_page(per_page, self.max_per_page))
        if page == 1:
            self._skipped_ids = 0
        with page_context("issues", page):
            result = self.client.post(
                f"{self._project}/_apis/wit/wiql", json={"query": WORK_ITEM_QUERY}
            )
            ids = [item["id"] for item in result.get("workItems", [])]
            while True:
                start = request.offset + self._skipped_ids
                chunk = ids[start : start + request.per_page]
                if not chunk:
                    return [], True

                data = self.client.get(
                    f"{self._project}/_apis/wit/workitems",
                    params={"ids": ",".join(str(i) for i in chunk), "$expand": "fields"},
                )
                by_id = {item["id"]: item for item in data.get("value", [])}
                issues = [map_issue(by_id[i]) for i in chunk if i in by_id]
                is_end = start + len(chunk) >= len(ids)
                if issues or is_end:
                    return issues, is_end

                logger.info("Work items %s were deleted, skipping them", chunk)
                self._skipped_ids += len(chunk)

    def get_comments(self, issue_number: int) -> list[Comment]:
        """Get every comment of a work item, following continuation tokens."""

        def fetch(request: PageRequest) -> Page[Comment]:
            params: dict[str, Any] = {"$top": request.per_page}
            if request.cursor:
                params["continuationToken"] = request.cursor
            data = self.client.get(
                f"{self._project}/_apis/wit/workItems/{issue_number}/comments",
                params=params,
                api_version=COMMENTS_API_VERSION,
            )
            cursor = data.get("continuationToken")
            return Page(
                [map_comment(comment, issue_number) for comment in data.get("comments", [])],
                is_end=not cursor,
                cursor=cursor,
            )

        return Paginator(
            "comments",
            fetch,
            per_page=MAX_COMMENTS_PER_PAGE,
            max_per_page=MAX_COMMENTS_PER_PAGE,
        ).collect()

    def get_pull_requests(
        self, page: int, per_page: int
    ) -> tuple[list[PullRequest], bool]:
        """Get one page of pull requests of the default git repository."""
        request = PageRequest(page, clamp_per_page(per_page, self.max_per_page))
        with page_context("pull_requests", page):
            data = self.client.get(
                f"{self._git_repository}/pullrequests",
                params={
                    "searchCriteria.status": "all",
                    "$top": request.per_page,
                    "$skip": request.offset,
                },
            )
            repo_web_url = f"{self.web_url}/_git/{self.repo_name}"
            prs = [
                map_pull_request(pr, self.repo_owner, repo_web_url)
                for pr in data.get("value", [])
            ]

        return prs, len(prs) < request.per_page


class AzureDevOpsDownloaderFactory(DownloaderFactory):
    """Creates Azure DevOps downloaders from migration options."""

    git_service_type = GitServiceType.AZURE_DEVOPS

    def new(self, options: MigrateOptions) -> AzureDevOpsDownloader:
        base_url, owner, name = split_clone_addr(options.clone_addr)
        logger.debug("Creating Azure DevOps downloader for %s/%s at %s", owner, name, base_url)
        return AzureDevOpsDownloader(
            base_url,
            owner,
            name,
            token=options.auth_token,
            username=options.auth_username,
            password=options.auth_password,
            max_per_page=options.max_per_page,
            governor=RateLimitGovernor(
                options.rate_limit_threshold, options.rate_limit_max_wait
            ),
        )
