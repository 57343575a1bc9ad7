"""Map Azure DevOps REST records onto the canonical migration models.

Every function is pure: it takes the JSON record as returned by the REST API
and builds a fresh canonical model. A field the API documents as always
present that turns up missing or null raises ``MappingError``.

API Reference: https://learn.microsoft.com/en-us/rest/api/azure/devops/
"""

from datetime import datetime
from typing import Any
from urllib.parse import quote

from ..migration.errors import MappingError
from ..migration.models import (
    Comment,
    Issue,
    Label,
    Milestone,
    PullRequest,
    PullRequestBranch,
    Repository,
    build_model,
)
from ..utils.date_parser import parse_api_timestamp

# Work item tags carry no color
DEFAULT_LABEL_COLOR = "ededed"

# Work item states treated as closed across the Agile, Scrum, Basic and CMMI processes
CLOSED_WORK_ITEM_STATES = frozenset({"Closed", "Done", "Removed"})

# Iteration time frame Azure DevOps reports for finished iterations
CLOSED_TIME_FRAME = "past"

# Pull request statuses; anything but "active" is closed
MERGED_PR_STATUS = "completed"
ACTIVE_PR_STATUS = "active"


def _require(record: dict[str, Any], key: str, kind: str) -> Any:
    value = record.get(key)
    if value is None:
        raise MappingError(f"{kind} record is missing required field '{key}'", kind)
    return value


def _timestamp(
    record: dict[str, Any], key: str, kind: str, required: bool = False
) -> datetime | None:
    value = _require(record, key, kind) if required else record.get(key)
    try:
        return parse_api_timestamp(value)
    except ValueError as e:
        raise MappingError(f"{kind} field '{key}': {e}", kind) from e


def strip_ref(ref: str | None, prefix: str = "refs/heads/") -> str:
    """Drop the ``refs/heads/`` prefix from a git ref name."""
    if not ref:
        return ""
    return ref[len(prefix) :] if ref.startswith(prefix) else ref


def identity(value: dict[str, Any] | str | None) -> tuple[str, str]:
    """Return (display name, unique name) of an identity reference.

    Identity fields are objects in current API versions; older servers send
    "Display Name <unique@name>" strings instead.
    """
    if not value:
        return "", ""
    if isinstance(value, str):
        if "<" in value and value.endswith(">"):
            display, _, unique = value[:-1].partition("<")
            return display.strip(), unique.strip()
        return value, ""
    return value.get("displayName", ""), value.get("uniqueName", "")


def project_web_url(base_url: str, owner: str, name: str) -> str:
    return f"{base_url.rstrip('/')}/{quote(owner)}/{quote(name)}"


def map_repository(
    project: dict[str, Any],
    git_repository: dict[str, Any] | None,
    owner: str,
    base_url: str,
) -> Repository:
    """Map a team project and its default git repository.

    Visibility ``"private"`` maps to ``is_private=True``; any other value,
    including a missing one, maps to ``False``.
    """
    name = _require(project, "name", "repository")
    git_repository = git_repository or {}

    original_url = git_repository.get("webUrl") or project_web_url(base_url, owner, name)
    clone_url = git_repository.get("remoteUrl") or f"{original_url}/_git/{quote(name)}"

    return build_model(
        Repository,
        "repository",
        owner=owner,
        name=name,
        description=project.get("description") or "",
        is_private=project.get("visibility") == "private",
        original_url=original_url,
        clone_url=clone_url,
        default_branch=strip_ref(git_repository.get("defaultBranch")),
    )


def map_label(tag: dict[str, Any]) -> Label:
    """Map a work item tag definition."""
    return build_model(
        Label,
        "label",
        name=_require(tag, "name", "label"),
        color=DEFAULT_LABEL_COLOR,
    )


def map_milestone(iteration: dict[str, Any]) -> Milestone:
    """Map a team iteration.

    Iterations in the ``past`` time frame are closed at their finish date;
    every other time frame is active.
    """
    title = _require(iteration, "name", "milestone")
    attributes = iteration.get("attributes") or {}
    start = _timestamp(attributes, "startDate", "milestone")
    finish = _timestamp(attributes, "finishDate", "milestone")

    if attributes.get("timeFrame") == CLOSED_TIME_FRAME:
        if finish is None:
            raise MappingError(
                f"closed iteration '{title}' has no finish date", "milestone"
            )
        state, closed = "closed", finish
    else:
        state, closed = "active", None

    return build_model(
        Milestone,
        "milestone",
        title=title,
        deadline=finish,
        created=start,
        closed=closed,
        state=state,
    )


def iteration_title(iteration_path: str | None) -> str:
    """Return the iteration name of a work item, "" for the project root."""
    if not iteration_path or "\\" not in iteration_path:
        return ""
    return iteration_path.rsplit("\\", 1)[-1]


def map_tags(tags: str | None) -> list[Label]:
    """Map a "tag1; tag2" work item field to labels, keeping order."""
    if not tags:
        return []
    return [
        Label(name=name.strip(), color=DEFAULT_LABEL_COLOR)
        for name in tags.split(";")
        if name.strip()
    ]


def map_issue(work_item: dict[str, Any]) -> Issue:
    """Map a work item to an issue.

    Work items carry no reactions, so ``reactions`` is always empty.
    """
    number = _require(work_item, "id", "issue")
    fields = _require(work_item, "fields", "issue")
    poster_name, poster_email = identity(_require(fields, "System.CreatedBy", "issue"))
    state = (
        "closed" if fields.get("System.State") in CLOSED_WORK_ITEM_STATES else "open"
    )

    return build_model(
        Issue,
        "issue",
        number=number,
        title=_require(fields, "System.Title", "issue"),
        content=fields.get("System.Description") or "",
        poster_name=poster_name,
        poster_email=poster_email,
        milestone=iteration_title(fields.get("System.IterationPath")),
        state=state,
        created=_timestamp(fields, "System.CreatedDate", "issue", required=True),
        updated=_timestamp(fields, "System.ChangedDate", "issue", required=True),
        closed=_timestamp(fields, "Microsoft.VSTS.Common.ClosedDate", "issue"),
        labels=map_tags(fields.get("System.Tags")),
    )


def map_comment(comment: dict[str, Any], issue_number: int) -> Comment:
    """Map a work item comment."""
    poster_name, poster_email = identity(comment.get("createdBy"))
    return build_model(
        Comment,
        "comment",
        issue_index=issue_number,
        index=_require(comment, "id", "comment"),
        poster_name=poster_name,
        poster_email=poster_email,
        created=_timestamp(comment, "createdDate", "comment", required=True),
        updated=_timestamp(comment, "modifiedDate", "comment"),
        content=comment.get("text") or "",
    )


def _branch(
    pr: dict[str, Any], ref_key: str, commit_key: str, owner: str
) -> PullRequestBranch:
    repository = pr.get("repository") or {}
    commit = pr.get(commit_key) or {}
    return PullRequestBranch(
        ref=strip_ref(_require(pr, ref_key, "pull_request")),
        sha=commit.get("commitId", ""),
        repo_name=repository.get("name", ""),
        owner_name=owner,
        clone_url=repository.get("remoteUrl", ""),
    )


def map_pull_request(pr: dict[str, Any], owner: str, repo_web_url: str) -> PullRequest:
    """Map a git pull request.

    ``completed`` pull requests are merged, ``abandoned`` ones are closed
    unmerged, and ``active`` ones are open.
    """
    number = _require(pr, "pullRequestId", "pull_request")
    status = pr.get("status", ACTIVE_PR_STATUS)
    poster_name, poster_email = identity(pr.get("createdBy"))
    created = _timestamp(pr, "creationDate", "pull_request", required=True)
    closed = _timestamp(pr, "closedDate", "pull_request")
    merged = status == MERGED_PR_STATUS
    merge_commit = pr.get("lastMergeCommit") or {}
    labels = [
        Label(name=label["name"], color=DEFAULT_LABEL_COLOR)
        for label in pr.get("labels") or []
        if label.get("name") and label.get("active", True)
    ]

    return build_model(
        PullRequest,
        "pull_request",
        number=number,
        title=_require(pr, "title", "pull_request"),
        content=pr.get("description") or "",
        poster_name=poster_name,
        poster_email=poster_email,
        state="open" if status == ACTIVE_PR_STATUS else "closed",
        created=created,
        updated=closed or created,
        closed=closed if status != ACTIVE_PR_STATUS else None,
        labels=labels,
        merged=merged,
        merged_time=closed if merged else None,
        merge_commit_sha=merge_commit.get("commitId", "") if merged else "",
        head=_branch(pr, "sourceRefName", "lastMergeSourceCommit", owner),
        base=_branch(pr, "targetRefName", "lastMergeTargetCommit", owner),
        original_url=f"{repo_web_url}/pullrequest/{number}",
    )
