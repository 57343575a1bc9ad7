"""Test configuration and fixtures."""

from pathlib import Path
from typing import Any

import pytest

from repo_migrations.migration.rate_limit import RateLimitGovernor


class FakeClock:
    """Manually advanced clock recording every sleep."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def governor(clock: FakeClock) -> RateLimitGovernor:
    """Governor on the fake clock, so tests never really sleep."""
    return RateLimitGovernor(clock=clock.time, sleep=clock.sleep)


@pytest.fixture
def temp_data_dir(tmp_path: Path) -> Path:
    """Create temporary data directory."""
    data_dir = tmp_path / "data"
    data_dir.mkdir(parents=True)
    return data_dir


@pytest.fixture
def work_item() -> dict[str, Any]:
    """Closed work item of go-gitea/test_repo in iteration 1.0.0."""
    return {
        "id": 1,
        "rev": 3,
        "fields": {
            "System.TeamProject": "test_repo",
            "System.IterationPath": "test_repo\\1.0.0",
            "System.WorkItemType": "Issue",
            "System.State": "Done",
            "System.Title": "Please add an animated gif icon to the merge button",
            "System.Description": "I just want the merge button to hurt my eyes a little.",
            "System.CreatedBy": {
                "displayName": "Gitea Tester",
                "uniqueName": "tester@example.com",
            },
            "System.CreatedDate": "2019-11-09T17:00:29.1Z",
            "System.ChangedDate": "2019-11-12T20:22:22.5753333Z",
            "Microsoft.VSTS.Common.ClosedDate": "2019-11-12T20:22:22Z",
            "System.Tags": "bug; good first issue",
        },
    }


@pytest.fixture
def iteration_past() -> dict[str, Any]:
    return {
        "id": "a1",
        "name": "1.0.0",
        "path": "test_repo\\1.0.0",
        "attributes": {
            "startDate": "2019-11-01T00:00:00Z",
            "finishDate": "2019-11-12T00:00:00Z",
            "timeFrame": "past",
        },
    }


@pytest.fixture
def iteration_current() -> dict[str, Any]:
    return {
        "id": "a2",
        "name": "1.1.0",
        "path": "test_repo\\1.1.0",
        "attributes": {
            "startDate": "2019-11-13T00:00:00Z",
            "finishDate": "2019-12-31T00:00:00Z",
            "timeFrame": "current",
        },
    }


@pytest.fixture
def azure_pull_request() -> dict[str, Any]:
    return {
        "pullRequestId": 3,
        "status": "completed",
        "title": "Update README.md",
        "description": "add warning to readme",
        "createdBy": {"displayName": "Gitea Tester", "uniqueName": "tester@example.com"},
        "creationDate": "2019-11-12T21:21:43Z",
        "closedDate": "2019-11-12T21:39:27Z",
        "sourceRefName": "refs/heads/master",
        "targetRefName": "refs/heads/release",
        "lastMergeSourceCommit": {"commitId": "7c7b0c9"},
        "lastMergeTargetCommit": {"commitId": "f32b0a9"},
        "lastMergeCommit": {"commitId": "f32b0a9d"},
        "repository": {
            "name": "test_repo",
            "remoteUrl": "https://go-gitea@dev.azure.com/go-gitea/test_repo/_git/test_repo",
        },
        "labels": [{"name": "documentation", "active": True}],
    }
