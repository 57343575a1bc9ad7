"""Convert PyGithub objects into the canonical migration models.

The converters only read attributes present in list payloads, so none of them
triggers a lazy completion request. Reactions are fetched by the downloader
and passed in.
"""

from github.GitRelease import GitRelease
from github.Issue import Issue as GithubIssue
from github.IssueComment import IssueComment
from github.Label import Label as GithubLabel
from github.Milestone import Milestone as GithubMilestone
from github.NamedUser import NamedUser
from github.PullRequest import PullRequest as GithubPullRequest
from github.PullRequestPart import PullRequestPart
from github.PullRequestReview import PullRequestReview
from github.Reaction import Reaction as GithubReaction
from github.Repository import Repository as GithubRepository

from ..migration.models import (
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


def _user(user: NamedUser | None) -> tuple[int, str]:
    """Return (id, login) of a possibly deleted user."""
    if user is None:
        return 0, ""
    return user.id, user.login


def convert_repository(repo: GithubRepository) -> Repository:
    """Convert a repository; ``owner`` is the owner login."""
    return build_model(
        Repository,
        "repository",
        owner=repo.owner.login,
        name=repo.name,
        description=repo.description or "",
        is_private=bool(repo.private),
        original_url=repo.html_url,
        clone_url=repo.clone_url,
        default_branch=repo.default_branch or "",
    )


def convert_label(label: GithubLabel) -> Label:
    return build_model(
        Label,
        "label",
        name=label.name,
        color=label.color,
        description=label.description,
    )


def convert_milestone(milestone: GithubMilestone) -> Milestone:
    """Convert a milestone; GitHub's ``open`` state maps to ``active``."""
    closed = milestone.state == "closed"
    return build_model(
        Milestone,
        "milestone",
        title=milestone.title,
        description=milestone.description or "",
        deadline=milestone.due_on,
        created=milestone.created_at,
        updated=milestone.updated_at,
        closed=milestone.closed_at if closed else None,
        state="closed" if closed else "active",
    )


def convert_release(release: GitRelease) -> Release:
    publisher_id, publisher_name = _user(release.author)
    return build_model(
        Release,
        "release",
        tag_name=release.tag_name,
        target_commitish=release.target_commitish or "",
        name=release.title or "",
        body=release.body or "",
        draft=release.draft,
        prerelease=release.prerelease,
        created=release.created_at,
        published=release.published_at,
        publisher_id=publisher_id,
        publisher_name=publisher_name,
    )


def convert_reaction(reaction: GithubReaction) -> Reaction:
    """Convert a reaction, keeping the content token verbatim."""
    user_id, user_name = _user(reaction.user)
    return build_model(
        Reaction,
        "reaction",
        user_id=user_id,
        user_name=user_name,
        content=reaction.content,
    )


def convert_issue(issue: GithubIssue, reactions: list[Reaction] | None = None) -> Issue:
    poster_id, poster_name = _user(issue.user)
    return build_model(
        Issue,
        "issue",
        number=issue.number,
        title=issue.title,
        content=issue.body or "",
        poster_id=poster_id,
        poster_name=poster_name,
        milestone=issue.milestone.title if issue.milestone else "",
        state=issue.state,
        is_locked=bool(issue.locked),
        created=issue.created_at,
        updated=issue.updated_at,
        closed=issue.closed_at,
        labels=[convert_label(label) for label in issue.labels],
        reactions=reactions or [],
    )


def convert_comment(
    comment: IssueComment, issue_number: int, reactions: list[Reaction] | None = None
) -> Comment:
    poster_id, poster_name = _user(comment.user)
    return build_model(
        Comment,
        "comment",
        issue_index=issue_number,
        index=comment.id,
        poster_id=poster_id,
        poster_name=poster_name,
        created=comment.created_at,
        updated=comment.updated_at,
        content=comment.body or "",
        reactions=reactions or [],
    )


def convert_branch(part: PullRequestPart) -> PullRequestBranch:
    """Convert the head or base of a pull request.

    The head repository is None once a fork has been deleted.
    """
    repo = part.repo
    return PullRequestBranch(
        ref=part.ref,
        sha=part.sha or "",
        repo_name=repo.name if repo else "",
        owner_name=repo.owner.login if repo else "",
        clone_url=repo.clone_url if repo else "",
    )


def convert_pull_request(
    pr: GithubPullRequest,
    reactions: list[Reaction] | None = None,
    is_locked: bool = False,
) -> PullRequest:
    poster_id, poster_name = _user(pr.user)
    return build_model(
        PullRequest,
        "pull_request",
        number=pr.number,
        title=pr.title,
        content=pr.body or "",
        poster_id=poster_id,
        poster_name=poster_name,
        milestone=pr.milestone.title if pr.milestone else "",
        state=pr.state,
        is_locked=is_locked,
        created=pr.created_at,
        updated=pr.updated_at,
        closed=pr.closed_at,
        labels=[convert_label(label) for label in pr.labels],
        reactions=reactions or [],
        merged=pr.merged_at is not None,
        merged_time=pr.merged_at,
        merge_commit_sha=pr.merge_commit_sha or "",
        head=convert_branch(pr.head),
        base=convert_branch(pr.base),
        patch_url=pr.patch_url or "",
        original_url=pr.html_url or "",
    )


def convert_review(review: PullRequestReview, pr_number: int) -> Review:
    reviewer_id, reviewer_name = _user(review.user)
    return build_model(
        Review,
        "review",
        issue_index=pr_number,
        id=review.id,
        reviewer_id=reviewer_id,
        reviewer_name=reviewer_name,
        commit_id=review.commit_id or "",
        content=review.body or "",
        created_at=review.submitted_at,
        state=review.state or "",
    )
