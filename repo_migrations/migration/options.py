"""Migration options and credential resolution."""

import os
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field

from .errors import ConfigError

DEFAULT_MAX_PER_PAGE = 100


class GitServiceType(str, Enum):
    """Remote services a downloader can be created for."""

    GITHUB = "github"
    AZURE_DEVOPS = "azuredevops"


@dataclass(frozen=True)
class Credentials:
    """Resolved credentials; ``token`` wins over username/password."""

    token: str = ""
    username: str = ""
    password: str = ""

    @property
    def uses_token(self) -> bool:
        return bool(self.token)


def resolve_credentials(
    token: str | None = None,
    username: str | None = None,
    password: str | None = None,
) -> Credentials:
    """Pick the credential form to authenticate with.

    Args:
        token: Personal access token
        username: Basic auth user name
        password: Basic auth password

    Returns:
        Credentials holding either the token or the username/password pair

    Raises:
        ConfigError: If neither a token nor a full username/password pair is given
    """
    if token:
        return Credentials(token=token)
    if username and password:
        return Credentials(username=username, password=password)
    raise ConfigError("no token or username/password provided")


class MigrateOptions(BaseModel):
    """Options for one migration run."""

    clone_addr: str = Field(..., description="Clone address of the source repository")
    service: GitServiceType = Field(..., description="Remote service type")
    auth_token: str = Field("", description="Personal access token")
    auth_username: str = Field("", description="Basic auth user name")
    auth_password: str = Field("", description="Basic auth password")
    max_per_page: int = Field(
        DEFAULT_MAX_PER_PAGE, ge=1, le=100, description="Largest page size requested"
    )
    rate_limit_threshold: int = Field(
        10, ge=0, description="Pause when fewer requests than this remain"
    )
    rate_limit_max_wait: float = Field(
        300.0, ge=0, description="Longest quota wait in seconds before failing"
    )
    skip_reactions: bool = Field(False, description="Do not fetch reactions")

    milestones: bool = Field(True, description="Migrate milestones")
    labels: bool = Field(True, description="Migrate labels")
    releases: bool = Field(True, description="Migrate releases")
    issues: bool = Field(True, description="Migrate issues")
    comments: bool = Field(True, description="Migrate comments")
    pull_requests: bool = Field(True, description="Migrate pull requests")

    def entity_kinds(self) -> set[str]:
        """Entity kinds enabled by the per-kind switches.

        Reviews ride along with pull requests.
        """
        switches = (
            "milestones",
            "labels",
            "releases",
            "issues",
            "comments",
            "pull_requests",
        )
        kinds = {kind for kind in switches if getattr(self, kind)}
        if self.pull_requests:
            kinds.add("reviews")
        return kinds

    def credentials(self) -> Credentials:
        """Resolve the configured credentials."""
        return resolve_credentials(
            self.auth_token, self.auth_username, self.auth_password
        )

    @classmethod
    def from_env(
        cls, clone_addr: str, service: GitServiceType | str, **overrides: object
    ) -> "MigrateOptions":
        """Build options from ``MIGRATION_*`` environment variables.

        Explicit keyword overrides win over the environment; ``None``
        overrides are ignored.
        """
        values: dict[str, object] = {"clone_addr": clone_addr, "service": service}
        env_map = {
            "auth_token": "MIGRATION_AUTH_TOKEN",
            "auth_username": "MIGRATION_AUTH_USERNAME",
            "auth_password": "MIGRATION_AUTH_PASSWORD",
            "max_per_page": "MIGRATION_MAX_PER_PAGE",
            "rate_limit_threshold": "MIGRATION_RATE_LIMIT_THRESHOLD",
            "rate_limit_max_wait": "MIGRATION_RATE_LIMIT_MAX_WAIT",
        }
        for field_name, env_var in env_map.items():
            value = os.getenv(env_var)
            if value:
                values[field_name] = value

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)
