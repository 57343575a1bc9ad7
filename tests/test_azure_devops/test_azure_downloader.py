"""Tests for the Azure DevOps downloader against a mocked REST API."""

import json
from collections.abc import Generator
from datetime import datetime, timezone
from typing import Any

import httpx
import pytest
import respx

from repo_migrations.azure_devops import AzureDevOpsDownloader
from repo_migrations.azure_devops.downloader import AzureDevOpsDownloaderFactory
from repo_migrations.migration.downloader import new_downloader
from repo_migrations.migration.errors import (
    ConfigError,
    MappingError,
    NotFoundError,
    UnsupportedError,
)
from repo_migrations.migration.options import MigrateOptions
from repo_migrations.migration.rate_limit import RateLimitGovernor

BASE_URL = "https://dev.azure.com"
ORG_URL = f"{BASE_URL}/go-gitea"
PROJECT = "/test_repo"


def wiql_response(ids: list[int]) -> dict[str, Any]:
    return {"workItems": [{"id": i, "url": f"{ORG_URL}/_apis/wit/workItems/{i}"} for i in ids]}


def make_work_item(work_item: dict[str, Any], number: int) -> dict[str, Any]:
    item = json.loads(json.dumps(work_item))
    item["id"] = number
    item["fields"]["System.Title"] = f"Issue {number}"
    return item


@pytest.fixture
def downloader(governor: RateLimitGovernor) -> Generator[AzureDevOpsDownloader]:
    with AzureDevOpsDownloader(
        BASE_URL, "go-gitea", "test_repo", token="pat", governor=governor
    ) as downloader:
        yield downloader


@pytest.fixture
def api() -> Generator[respx.MockRouter]:
    with respx.mock(base_url=ORG_URL, assert_all_called=False) as mock:
        yield mock


class TestConstruction:
    def test_requires_credentials(self) -> None:
        with pytest.raises(ConfigError):
            AzureDevOpsDownloader(BASE_URL, "go-gitea", "test_repo")

    def test_str(self, downloader: AzureDevOpsDownloader) -> None:
        assert str(downloader) == (
            "migration from azure devops server https://dev.azure.com go-gitea/test_repo"
        )

    def test_factory(self) -> None:
        options = MigrateOptions(
            clone_addr="https://dev.azure.com/go-gitea/test_repo/_git/test_repo",
            service="azuredevops",
            auth_token="pat",
            max_per_page=50,
            rate_limit_threshold=5,
        )
        downloader = AzureDevOpsDownloaderFactory().new(options)

        assert isinstance(downloader, AzureDevOpsDownloader)
        assert downloader.repo_owner == "go-gitea"
        assert downloader.repo_name == "test_repo"
        assert downloader.max_per_page == 50
        assert downloader.client.governor.threshold == 5
        downloader.close()

    def test_registered(self) -> None:
        options = MigrateOptions(
            clone_addr="https://dev.azure.com/go-gitea/test_repo",
            service="azuredevops",
            auth_username="user",
            auth_password="secret",
        )
        with new_downloader(options) as downloader:
            assert isinstance(downloader, AzureDevOpsDownloader)


class TestRepoInfo:
    def test_repo_info(self, downloader, api) -> None:
        api.get("/_apis/projects/test_repo").respond(
            200,
            json={"name": "test_repo", "description": "Test repository", "visibility": "private"},
        )
        api.get(f"{PROJECT}/_apis/git/repositories/test_repo").respond(
            200,
            json={
                "webUrl": f"{ORG_URL}/test_repo/_git/test_repo",
                "remoteUrl": "https://go-gitea@dev.azure.com/go-gitea/test_repo/_git/test_repo",
                "defaultBranch": "refs/heads/master",
            },
        )

        repo = downloader.get_repo_info()

        assert repo.owner == "go-gitea"
        assert repo.name == "test_repo"
        assert repo.is_private is True
        assert repo.default_branch == "master"
        assert repo.original_url == f"{ORG_URL}/test_repo/_git/test_repo"

    def test_project_not_found(self, downloader, api) -> None:
        api.get("/_apis/projects/test_repo").respond(404, json={"message": "missing"})

        with pytest.raises(NotFoundError, match="go-gitea/test_repo") as exc_info:
            downloader.get_repo_info()
        assert exc_info.value.entity_kind == "repository"

    def test_project_without_git_repository(self, downloader, api) -> None:
        api.get("/_apis/projects/test_repo").respond(200, json={"name": "test_repo"})
        api.get(f"{PROJECT}/_apis/git/repositories/test_repo").respond(404)

        repo = downloader.get_repo_info()

        assert repo.default_branch == ""
        assert repo.clone_url == f"{ORG_URL}/test_repo/_git/test_repo"

    def test_topics_absent(self, downloader) -> None:
        assert downloader.get_topics() == []


class TestFullSets:
    def test_labels(self, downloader, api) -> None:
        route = api.get(f"{PROJECT}/_apis/wit/tags").respond(
            200, json={"count": 2, "value": [{"name": "bug"}, {"name": "duplicate"}]}
        )

        labels = downloader.get_labels()

        assert [label.name for label in labels] == ["bug", "duplicate"]
        assert all(label.color == "ededed" for label in labels)
        assert route.call_count == 1

    def test_milestones(self, downloader, api, iteration_past, iteration_current) -> None:
        api.get(f"{PROJECT}/_apis/work/teamsettings/iterations").respond(
            200, json={"count": 2, "value": [iteration_past, iteration_current]}
        )

        milestones = downloader.get_milestones()

        assert [m.title for m in milestones] == ["1.0.0", "1.1.0"]
        assert milestones[0].state == "closed"
        assert milestones[0].closed == datetime(2019, 11, 12, tzinfo=timezone.utc)
        assert milestones[1].state == "active"
        assert milestones[1].closed is None

    def test_milestone_mapping_error_has_context(self, downloader, api) -> None:
        api.get(f"{PROJECT}/_apis/work/teamsettings/iterations").respond(
            200, json={"value": [{"name": "old", "attributes": {"timeFrame": "past"}}]}
        )

        with pytest.raises(MappingError) as exc_info:
            downloader.get_milestones()
        assert exc_info.value.page == 1

    def test_releases_unsupported(self, downloader) -> None:
        with pytest.raises(UnsupportedError):
            downloader.get_releases()

    def test_reviews_unsupported(self, downloader) -> None:
        with pytest.raises(UnsupportedError):
            downloader.get_reviews(3)


class TestIssues:
    def test_single_closed_issue(self, downloader, api, work_item) -> None:
        """go-gitea/test_repo has one closed issue in milestone 1.0.0."""
        api.post(f"{PROJECT}/_apis/wit/wiql").respond(200, json=wiql_response([1]))
        items = api.get(f"{PROJECT}/_apis/wit/workitems").respond(
            200, json={"count": 1, "value": [work_item]}
        )

        issues, is_end = downloader.get_issues(1, 10)

        assert is_end is True
        assert len(issues) == 1
        issue = issues[0]
        assert issue.number == 1
        assert issue.milestone == "1.0.0"
        assert issue.state == "closed"
        assert issue.closed == datetime(2019, 11, 12, 20, 22, 22, tzinfo=timezone.utc)
        assert items.calls.last.request.url.params["ids"] == "1"

    def test_pages_in_order(self, downloader, api, work_item) -> None:
        api.post(f"{PROJECT}/_apis/wit/wiql").respond(200, json=wiql_response([1, 2, 3]))

        def serve(request: httpx.Request) -> httpx.Response:
            ids = [int(i) for i in request.url.params["ids"].split(",")]
            # Batch responses are not guaranteed to follow the requested order
            value = [make_work_item(work_item, i) for i in reversed(ids)]
            return httpx.Response(200, json={"count": len(value), "value": value})

        items = api.get(f"{PROJECT}/_apis/wit/workitems").mock(side_effect=serve)

        first, first_end = downloader.get_issues(1, 2)
        second, second_end = downloader.get_issues(2, 2)
        third, third_end = downloader.get_issues(3, 2)

        assert [i.number for i in first] == [1, 2]
        assert first_end is False
        assert [i.number for i in second] == [3]
        assert second_end is True
        assert third == []
        assert third_end is True
        assert items.call_count == 2

    def test_deleted_slice_skipped(self, downloader, api, work_item) -> None:
        """Work items deleted after the query never produce an empty page."""
        api.post(f"{PROJECT}/_apis/wit/wiql").respond(
            200, json=wiql_response([1, 2, 3, 4, 5, 6])
        )

        def serve(request: httpx.Request) -> httpx.Response:
            ids = [int(i) for i in request.url.params["ids"].split(",")]
            value = [make_work_item(work_item, i) for i in ids if i > 2]
            return httpx.Response(200, json={"count": len(value), "value": value})

        items = api.get(f"{PROJECT}/_apis/wit/workitems").mock(side_effect=serve)

        first, first_end = downloader.get_issues(1, 2)
        second, second_end = downloader.get_issues(2, 2)

        assert [i.number for i in first] == [3, 4]
        assert first_end is False
        assert [i.number for i in second] == [5, 6]
        assert second_end is True
        requested = [call.request.url.params["ids"] for call in items.calls]
        assert requested == ["1,2", "3,4", "5,6"]

    def test_all_deleted(self, downloader, api) -> None:
        api.post(f"{PROJECT}/_apis/wit/wiql").respond(
            200, json=wiql_response([1, 2, 3, 4])
        )
        items = api.get(f"{PROJECT}/_apis/wit/workitems").respond(
            200, json={"count": 0, "value": []}
        )

        assert downloader.get_issues(1, 2) == ([], True)
        assert items.call_count == 2

    def test_no_issues(self, downloader, api) -> None:
        api.post(f"{PROJECT}/_apis/wit/wiql").respond(200, json=wiql_response([]))
        items = api.get(f"{PROJECT}/_apis/wit/workitems")

        assert downloader.get_issues(1, 10) == ([], True)
        assert not items.called

    def test_per_page_clamped(self, downloader, api, work_item) -> None:
        api.post(f"{PROJECT}/_apis/wit/wiql").respond(
            200, json=wiql_response(list(range(1, 151)))
        )

        def serve(request: httpx.Request) -> httpx.Response:
            ids = [int(i) for i in request.url.params["ids"].split(",")]
            return httpx.Response(
                200, json={"value": [make_work_item(work_item, i) for i in ids]}
            )

        api.get(f"{PROJECT}/_apis/wit/workitems").mock(side_effect=serve)

        issues, is_end = downloader.get_issues(1, 1000)

        assert len(issues) == 100
        assert is_end is False

    def test_mapping_error_has_page(self, downloader, api, work_item) -> None:
        del work_item["fields"]["System.Title"]
        api.post(f"{PROJECT}/_apis/wit/wiql").respond(200, json=wiql_response([1]))
        api.get(f"{PROJECT}/_apis/wit/workitems").respond(200, json={"value": [work_item]})

        with pytest.raises(MappingError) as exc_info:
            downloader.get_issues(1, 1)
        assert exc_info.value.page == 1
        assert exc_info.value.entity_kind == "issue"


class TestComments:
    def test_follows_continuation_token(self, downloader, api) -> None:
        def comment(number: int) -> dict[str, Any]:
            return {
                "id": number,
                "text": f"comment {number}",
                "createdBy": {"displayName": "Gitea Tester"},
                "createdDate": "2019-11-12T21:00:13Z",
            }

        route = api.get(f"{PROJECT}/_apis/wit/workItems/1/comments").mock(
            side_effect=[
                httpx.Response(
                    200, json={"comments": [comment(1)], "continuationToken": "abc"}
                ),
                httpx.Response(200, json={"comments": [comment(2)]}),
            ]
        )

        comments = downloader.get_comments(1)

        assert [c.index for c in comments] == [1, 2]
        assert all(c.issue_index == 1 for c in comments)
        assert "continuationToken" not in route.calls[0].request.url.params
        assert route.calls[1].request.url.params["continuationToken"] == "abc"
        assert route.calls[0].request.url.params["api-version"] == "7.1-preview.4"
        assert route.calls[0].request.url.params["$top"] == "200"


class TestPullRequests:
    def test_pull_requests(self, downloader, api, azure_pull_request) -> None:
        route = api.get(f"{PROJECT}/_apis/git/repositories/test_repo/pullrequests").respond(
            200, json={"count": 1, "value": [azure_pull_request]}
        )

        prs, is_end = downloader.get_pull_requests(1, 10)

        assert is_end is True
        assert [pr.number for pr in prs] == [3]
        assert prs[0].merged is True
        assert prs[0].original_url == f"{ORG_URL}/test_repo/_git/test_repo/pullrequest/3"
        params = route.calls.last.request.url.params
        assert params["searchCriteria.status"] == "all"
        assert params["$top"] == "10"
        assert params["$skip"] == "0"

    def test_full_page_is_not_end(self, downloader, api, azure_pull_request) -> None:
        route = api.get(f"{PROJECT}/_apis/git/repositories/test_repo/pullrequests").respond(
            200, json={"value": [azure_pull_request]}
        )

        prs, is_end = downloader.get_pull_requests(3, 1)

        assert len(prs) == 1
        assert is_end is False
        assert route.calls.last.request.url.params["$skip"] == "2"


class TestGoGiteaTestRepo:
    def test_go_gitea_test_repo(
        self, downloader, api, work_item, iteration_past, iteration_current
    ) -> None:
        """go-gitea/test_repo: 2 labels, 2 milestones, one issue in 1.0.0."""
        api.get(f"{PROJECT}/_apis/wit/tags").respond(
            200, json={"count": 2, "value": [{"name": "bug"}, {"name": "duplicate"}]}
        )
        api.get(f"{PROJECT}/_apis/work/teamsettings/iterations").respond(
            200, json={"count": 2, "value": [iteration_past, iteration_current]}
        )
        api.post(f"{PROJECT}/_apis/wit/wiql").respond(200, json=wiql_response([1]))
        api.get(f"{PROJECT}/_apis/wit/workitems").respond(
            200, json={"count": 1, "value": [work_item]}
        )

        labels = downloader.get_labels()
        milestones = downloader.get_milestones()
        issues, is_end = downloader.get_issues(1, 10)

        assert len(labels) == 2
        assert [(m.title, m.state) for m in milestones] == [
            ("1.0.0", "closed"),
            ("1.1.0", "active"),
        ]
        assert is_end is True
        assert len(issues) == 1
        assert issues[0].milestone == "1.0.0"
        assert issues[0].closed == datetime(2019, 11, 12, 20, 22, 22, tzinfo=timezone.utc)
