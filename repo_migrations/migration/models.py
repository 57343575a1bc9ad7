"""Pydantic models for the canonical migration representation.

These models are service-agnostic: every downloader maps its remote records
into them, and the import pipeline consumes them without knowing which
service they came from.
"""

from datetime import datetime
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .errors import MappingError

ModelT = TypeVar("ModelT", bound=BaseModel)


class Repository(BaseModel):
    """Source project metadata.

    ``owner`` and ``name`` together identify the project on the remote service.
    """

    owner: str = Field(..., description="Owner, organization or namespace")
    name: str = Field(..., description="Repository or project name")
    description: str = Field("", description="Free-form project description")
    is_private: bool = Field(False, description="Whether the project is private")
    original_url: str = Field(..., description="Web URL of the source project")
    clone_url: str = Field(..., description="Git clone URL")
    default_branch: str = Field("", description="Default branch name without refs/heads/")


class Label(BaseModel):
    """Issue label, unique by name within a repository."""

    name: str = Field(..., description="Name of the label")
    color: str = Field(
        ..., description="Hexadecimal color code without leading #, case preserved"
    )
    description: str | None = Field(None, description="Short description of the label")

    @field_validator("color")
    @classmethod
    def _strip_hash(cls, value: str) -> str:
        return value.removeprefix("#")


class Milestone(BaseModel):
    """Milestone grouping issues.

    ``closed`` is set if and only if ``state`` is ``"closed"``.
    """

    title: str = Field(..., description="Milestone title, referenced by issues")
    description: str = Field("", description="Milestone description")
    deadline: datetime | None = Field(None, description="Due date")
    created: datetime | None = Field(None, description="Creation timestamp")
    updated: datetime | None = Field(None, description="Last update timestamp")
    closed: datetime | None = Field(None, description="Close timestamp")
    state: Literal["active", "closed"] = Field("active", description="Lifecycle state")

    @model_validator(mode="after")
    def _closed_matches_state(self) -> "Milestone":
        if (self.state == "closed") != (self.closed is not None):
            raise ValueError("closed timestamp must be set exactly when state is closed")
        return self


class Release(BaseModel):
    """Tagged release."""

    tag_name: str = Field(..., description="Git tag of the release")
    target_commitish: str = Field("", description="Branch or commit the tag targets")
    name: str = Field("", description="Release title")
    body: str = Field("", description="Release notes")
    draft: bool = Field(False, description="Whether the release is a draft")
    prerelease: bool = Field(False, description="Whether the release is a prerelease")
    created: datetime = Field(..., description="Creation timestamp")
    published: datetime | None = Field(None, description="Publication timestamp")
    publisher_id: int = Field(0, description="Numeric id of the publisher")
    publisher_name: str = Field("", description="Display name of the publisher")
    publisher_email: str = Field("", description="Email of the publisher")


class Reaction(BaseModel):
    """Emoji reaction; ``content`` is the remote token verbatim (e.g. ``+1``)."""

    user_id: int = Field(0, description="Numeric id of the reacting user")
    user_name: str = Field(..., description="Login or display name of the user")
    content: str = Field(..., description="Reaction token as returned by the remote")


class Issue(BaseModel):
    """Issue with its labels and reactions.

    ``milestone`` is the milestone title, a weak reference resolved later by
    the import pipeline.
    """

    number: int = Field(..., description="Source-assigned sequential issue number")
    title: str = Field(..., description="Issue title")
    content: str = Field("", description="Issue body")
    poster_id: int = Field(0, description="Numeric id of the author")
    poster_name: str = Field("", description="Login or display name of the author")
    poster_email: str = Field("", description="Email or unique name of the author")
    milestone: str = Field("", description="Title of the milestone, empty if none")
    state: Literal["open", "closed"] = Field("open", description="Issue state")
    is_locked: bool = Field(False, description="Whether the conversation is locked")
    created: datetime = Field(..., description="Creation timestamp")
    updated: datetime = Field(..., description="Last update timestamp")
    closed: datetime | None = Field(None, description="Close timestamp")
    labels: list[Label] = Field(default_factory=list, description="Labels in remote order")
    reactions: list[Reaction] = Field(
        default_factory=list, description="Reactions in remote order"
    )


class Comment(BaseModel):
    """Comment on an issue or pull request."""

    issue_index: int = Field(..., description="Number of the commented issue")
    index: int = Field(0, description="Remote comment id")
    poster_id: int = Field(0, description="Numeric id of the author")
    poster_name: str = Field("", description="Login or display name of the author")
    poster_email: str = Field("", description="Email or unique name of the author")
    created: datetime = Field(..., description="Creation timestamp")
    updated: datetime | None = Field(None, description="Last update timestamp")
    content: str = Field("", description="Comment body")
    reactions: list[Reaction] = Field(default_factory=list, description="Reactions")


class PullRequestBranch(BaseModel):
    """One side (head or base) of a pull request."""

    ref: str = Field(..., description="Branch name without refs/heads/")
    sha: str = Field("", description="Commit sha of the branch tip")
    repo_name: str = Field("", description="Repository holding the branch")
    owner_name: str = Field("", description="Owner of the repository")
    clone_url: str = Field("", description="Clone URL of the repository")


class PullRequest(BaseModel):
    """Pull request; shares the issue fields plus merge information."""

    number: int = Field(..., description="Source-assigned pull request number")
    title: str = Field(..., description="Pull request title")
    content: str = Field("", description="Pull request body")
    poster_id: int = Field(0, description="Numeric id of the author")
    poster_name: str = Field("", description="Login or display name of the author")
    poster_email: str = Field("", description="Email or unique name of the author")
    milestone: str = Field("", description="Title of the milestone, empty if none")
    state: Literal["open", "closed"] = Field("open", description="Pull request state")
    is_locked: bool = Field(False, description="Whether the conversation is locked")
    created: datetime = Field(..., description="Creation timestamp")
    updated: datetime = Field(..., description="Last update timestamp")
    closed: datetime | None = Field(None, description="Close timestamp")
    labels: list[Label] = Field(default_factory=list, description="Labels")
    reactions: list[Reaction] = Field(default_factory=list, description="Reactions")
    merged: bool = Field(False, description="Whether the pull request was merged")
    merged_time: datetime | None = Field(None, description="Merge timestamp")
    merge_commit_sha: str = Field("", description="Sha of the merge commit")
    head: PullRequestBranch = Field(..., description="Source branch")
    base: PullRequestBranch = Field(..., description="Target branch")
    patch_url: str = Field("", description="URL of the patch")
    original_url: str = Field("", description="Web URL of the pull request")


class Review(BaseModel):
    """Pull request review."""

    issue_index: int = Field(..., description="Number of the reviewed pull request")
    id: int = Field(..., description="Remote review id")
    reviewer_id: int = Field(0, description="Numeric id of the reviewer")
    reviewer_name: str = Field("", description="Login of the reviewer")
    commit_id: str = Field("", description="Commit the review applies to")
    content: str = Field("", description="Review body")
    created_at: datetime | None = Field(None, description="Submission timestamp")
    state: str = Field("", description="Review state token, e.g. APPROVED")


def build_model(model: type[ModelT], kind: str, **values: Any) -> ModelT:
    """Validate ``values`` into ``model``, raising MappingError on bad records."""
    try:
        return model(**values)
    except ValidationError as e:
        raise MappingError(f"invalid {kind} record: {e}", kind) from e
