"""Tests for migration options and credential resolution."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from repo_migrations.migration.errors import ConfigError
from repo_migrations.migration.options import (
    Credentials,
    GitServiceType,
    MigrateOptions,
    resolve_credentials,
)


class TestResolveCredentials:
    def test_token_wins_over_password(self) -> None:
        credentials = resolve_credentials("pat", "user", "secret")
        assert credentials == Credentials(token="pat")
        assert credentials.uses_token

    def test_username_password(self) -> None:
        credentials = resolve_credentials(None, "user", "secret")
        assert credentials == Credentials(username="user", password="secret")
        assert not credentials.uses_token

    @pytest.mark.parametrize(
        ("token", "username", "password"),
        [(None, None, None), ("", "", ""), (None, "user", None), (None, None, "secret")],
    )
    def test_missing_credentials(self, token, username, password) -> None:
        with pytest.raises(ConfigError, match="no token or username/password"):
            resolve_credentials(token, username, password)


class TestMigrateOptions:
    def test_defaults(self) -> None:
        options = MigrateOptions(clone_addr="https://github.com/o/r", service="github")
        assert options.service is GitServiceType.GITHUB
        assert options.max_per_page == 100
        assert options.rate_limit_threshold == 10
        assert options.rate_limit_max_wait == 300.0
        assert options.issues and options.comments and options.pull_requests

    def test_max_per_page_bounds(self) -> None:
        with pytest.raises(ValidationError):
            MigrateOptions(clone_addr="x", service="github", max_per_page=101)

    def test_credentials_without_auth(self) -> None:
        options = MigrateOptions(clone_addr="x", service="github")
        with pytest.raises(ConfigError):
            options.credentials()

    @patch.dict(
        os.environ,
        {
            "MIGRATION_AUTH_TOKEN": "env_token",
            "MIGRATION_MAX_PER_PAGE": "50",
            "MIGRATION_RATE_LIMIT_MAX_WAIT": "60",
        },
        clear=True,
    )
    def test_from_env(self) -> None:
        options = MigrateOptions.from_env("https://dev.azure.com/o/p", "azuredevops")
        assert options.service is GitServiceType.AZURE_DEVOPS
        assert options.auth_token == "env_token"
        assert options.max_per_page == 50
        assert options.rate_limit_max_wait == 60.0

    @patch.dict(os.environ, {"MIGRATION_AUTH_TOKEN": "env_token"}, clear=True)
    def test_from_env_overrides(self) -> None:
        options = MigrateOptions.from_env(
            "https://github.com/o/r", "github", auth_token="cli_token", max_per_page=None
        )
        assert options.auth_token == "cli_token"
        assert options.max_per_page == 100

    def test_entity_kinds(self) -> None:
        options = MigrateOptions(clone_addr="x", service="github")
        assert options.entity_kinds() == {
            "milestones",
            "labels",
            "releases",
            "issues",
            "comments",
            "pull_requests",
            "reviews",
        }

    def test_entity_kinds_switched_off(self) -> None:
        options = MigrateOptions(
            clone_addr="x", service="github", releases=False, pull_requests=False
        )
        kinds = options.entity_kinds()
        assert "releases" not in kinds
        assert "reviews" not in kinds
        assert "issues" in kinds
