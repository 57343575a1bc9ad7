"""Dump a remote repository to JSON files through a downloader."""

import json
import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, Field
from rich.console import Console

from ..migration.downloader import Downloader
from ..migration.errors import AuthFailureError, MigrationError, UnsupportedError
from ..migration.models import Comment, Issue, PullRequest, Review
from ..migration.options import DEFAULT_MAX_PER_PAGE

console = Console()
logger = logging.getLogger(__name__)

T = TypeVar("T")

ENTITY_KINDS = (
    "milestones",
    "labels",
    "releases",
    "issues",
    "comments",
    "pull_requests",
    "reviews",
)


class DumpCancelled(Exception):
    """Raised between pages once the cancel event is set."""


class DumpResult(BaseModel):
    """Outcome of one dump run."""

    owner: str = Field(..., description="Owner of the dumped repository")
    name: str = Field(..., description="Name of the dumped repository")
    output_dir: str = Field(..., description="Directory holding the JSON files")
    counts: dict[str, int] = Field(
        default_factory=dict, description="Records written per entity kind"
    )
    skipped: list[str] = Field(
        default_factory=list, description="Kinds the service does not support"
    )
    errors: dict[str, str] = Field(
        default_factory=dict, description="Failure message per failed entity kind"
    )
    cancelled: bool = Field(False, description="Whether the run was cancelled")


class RepositoryDumper:
    """Fetch every enabled entity kind and store each as one JSON file.

    Failure policy per kind:

    - ``AuthFailureError`` aborts the run, as does any error fetching the
      repository itself.
    - ``UnsupportedError`` skips the kind.
    - Any other ``MigrationError`` is recorded and nothing is written for
      the kind; the run continues with the next one.
    """

    def __init__(
        self,
        downloader: Downloader,
        base_path: str = "data/migrations",
        per_page: int = DEFAULT_MAX_PER_PAGE,
        cancel: threading.Event | None = None,
    ):
        """Initialize the dumper.

        Args:
            downloader: Downloader bound to the source repository
            base_path: Base directory; files land in ``{base_path}/{owner}/{name}``
            per_page: Page size for issues and pull requests
            cancel: Event checked between pages to stop the run
        """
        self.downloader = downloader
        self.base_path = Path(base_path)
        self.per_page = per_page
        self.cancel = cancel or threading.Event()

    def _output_dir(self, owner: str, name: str) -> Path:
        return self.base_path / owner / name

    def _save(self, directory: Path, kind: str, data: Any) -> Path:
        file_path = directory / f"{kind}.json"
        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        return file_path

    def _save_models(self, directory: Path, kind: str, items: list[BaseModel]) -> Path:
        return self._save(directory, kind, [item.model_dump(mode="json") for item in items])

    def _check_cancel(self) -> None:
        if self.cancel.is_set():
            raise DumpCancelled()

    def _fetch(
        self, result: DumpResult, kind: str, fetch: Callable[[], T]
    ) -> T | None:
        """Run one fetch under the per-kind failure policy."""
        try:
            return fetch()
        except AuthFailureError:
            raise
        except UnsupportedError as e:
            logger.info("Skipping %s: %s", kind, e)
            result.skipped.append(kind)
        except MigrationError as e:
            logger.error("Fetching %s failed: %s", kind, e)
            result.errors[kind] = str(e)
        return None

    def _paged(self, fetch_page: Callable[[int, int], tuple[list[T], bool]]) -> list[T]:
        items: list[T] = []
        page = 1
        while True:
            self._check_cancel()
            batch, is_end = fetch_page(page, self.per_page)
            items.extend(batch)
            if is_end:
                return items
            page += 1

    def dump(
        self, kinds: set[str] | None = None, skip_topics: bool = False
    ) -> DumpResult:
        """Dump the repository.

        Args:
            kinds: Entity kinds to dump, all of ``ENTITY_KINDS`` if None
            skip_topics: Do not fetch repository topics

        Returns:
            DumpResult with per-kind counts, skipped kinds and errors

        Raises:
            AuthFailureError: If the remote rejects the credentials
            MigrationError: If the repository itself cannot be fetched
        """
        kinds = set(ENTITY_KINDS) if kinds is None else kinds
        repo = self.downloader.get_repo_info()
        directory = self._output_dir(repo.owner, repo.name)
        directory.mkdir(parents=True, exist_ok=True)
        result = DumpResult(owner=repo.owner, name=repo.name, output_dir=str(directory))

        self._save(directory, "repo", repo.model_dump(mode="json"))
        console.print(f"Saved repository {repo.owner}/{repo.name} to {directory}")

        try:
            self._dump_all(result, directory, kinds, skip_topics)
        except DumpCancelled:
            logger.warning("Dump of %s/%s cancelled", repo.owner, repo.name)
            result.cancelled = True

        return result

    def _dump_all(
        self, result: DumpResult, directory: Path, kinds: set[str], skip_topics: bool
    ) -> None:
        if not skip_topics:
            topics = self._fetch(result, "topics", self.downloader.get_topics)
            if topics is not None:
                self._save(directory, "topics", topics)
                result.counts["topics"] = len(topics)

        full_sets = {
            "milestones": self.downloader.get_milestones,
            "labels": self.downloader.get_labels,
            "releases": self.downloader.get_releases,
        }
        for kind, fetch in full_sets.items():
            if kind not in kinds:
                continue
            self._check_cancel()
            items = self._fetch(result, kind, fetch)
            self._store(result, directory, kind, items)

        if "issues" in kinds:
            issues = self._fetch(
                result, "issues", lambda: self._paged(self.downloader.get_issues)
            )
            self._store(result, directory, "issues", issues)
            if issues is not None and "comments" in kinds:
                self._store(
                    result, directory, "comments", self._comments(result, issues)
                )

        if "pull_requests" in kinds:
            prs = self._fetch(
                result,
                "pull_requests",
                lambda: self._paged(self.downloader.get_pull_requests),
            )
            self._store(result, directory, "pull_requests", prs)
            if prs is not None and "reviews" in kinds:
                self._store(result, directory, "reviews", self._reviews(result, prs))

    def _store(
        self,
        result: DumpResult,
        directory: Path,
        kind: str,
        items: list[Any] | None,
    ) -> None:
        if items is None:
            return
        file_path = self._save_models(directory, kind, items)
        result.counts[kind] = len(items)
        console.print(f"Saved {len(items)} {kind} to {file_path}")

    def _comments(self, result: DumpResult, issues: list[Issue]) -> list[Comment] | None:
        def fetch_all() -> list[Comment]:
            comments: list[Comment] = []
            for issue in issues:
                self._check_cancel()
                comments.extend(self.downloader.get_comments(issue.number))
            return comments

        return self._fetch(result, "comments", fetch_all)

    def _reviews(self, result: DumpResult, prs: list[PullRequest]) -> list[Review] | None:
        def fetch_all() -> list[Review]:
            reviews: list[Review] = []
            for pr in prs:
                self._check_cancel()
                reviews.extend(self.downloader.get_reviews(pr.number))
            return reviews

        return self._fetch(result, "reviews", fetch_all)
