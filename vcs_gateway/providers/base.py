"""
Abstract operation contract for VCS providers.

VcsOperations is the single interface every backend implements and every
caller programs against. It speaks only canonical entities (see
vcs_gateway.models.domain) and raises only ProviderRequestError for remote
failures, whatever the backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from vcs_gateway.config.settings import ProviderConfig
from vcs_gateway.enums import MergeMethod
from vcs_gateway.models.domain import (
    BranchInfo,
    CommitInfo,
    FileInfo,
    IssueInfo,
    OrganizationInfo,
    PullRequestInfo,
    ReleaseInfo,
    RepositoryInfo,
    TagInfo,
    UploadResult,
    UserInfo,
    WebhookInfo,
)


class VcsOperations(ABC):
    """Canonical operation surface over a remote VCS backend.

    Implementations reconcile backend differences such as:
    - Different auth headers (``token X`` vs ``Bearer X``)
    - Different pagination parameters (``limit`` vs ``per_page``)
    - Different endpoint shapes (search results wrapped in ``data`` vs ``items``)
    - Different HTTP verbs for the same operation (file creation, merges)

    All list operations are paginated with a 1-based ``page`` and a page
    size ``limit``. All methods raise ProviderRequestError on failure.
    """

    @abstractmethod
    def get_config(self) -> ProviderConfig:
        """Return the configuration this provider was built from."""

    @abstractmethod
    async def aclose(self) -> None:
        """Release the provider's HTTP resources."""

    # -------------------------------------------------------------------------
    # Repositories
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_repositories(
        self,
        username: str | None = None,
        page: int = 1,
        limit: int = 30,
    ) -> list[RepositoryInfo]:
        """List repositories of a user.

        Args:
            username: Whose repositories to list. Defaults to the configured
                username, then to the authenticated user.
            page: 1-based page number
            limit: Page size

        Returns:
            List of RepositoryInfo
        """

    @abstractmethod
    async def get_repository(self, owner: str, repo: str) -> RepositoryInfo: ...

    @abstractmethod
    async def create_repository(
        self,
        name: str,
        description: str | None = None,
        private: bool = False,
        auto_init: bool = False,
    ) -> RepositoryInfo:
        """Create a repository owned by the authenticated user."""

    @abstractmethod
    async def update_repository(self, owner: str, repo: str, **changes: Any) -> RepositoryInfo:
        """Update repository settings (description, private, default_branch, ...)."""

    @abstractmethod
    async def delete_repository(self, owner: str, repo: str) -> bool: ...

    @abstractmethod
    async def fork_repository(self, owner: str, repo: str, organization: str | None = None) -> RepositoryInfo:
        """Fork a repository into the authenticated account or an organization."""

    @abstractmethod
    async def search_repositories(self, query: str, page: int = 1, limit: int = 30) -> list[RepositoryInfo]: ...

    # -------------------------------------------------------------------------
    # Branches
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_branches(self, owner: str, repo: str, page: int = 1, limit: int = 30) -> list[BranchInfo]: ...

    @abstractmethod
    async def get_branch(self, owner: str, repo: str, branch: str) -> BranchInfo: ...

    @abstractmethod
    async def create_branch(self, owner: str, repo: str, branch: str, from_branch: str) -> BranchInfo:
        """Create ``branch`` pointing at the current head of ``from_branch``."""

    @abstractmethod
    async def delete_branch(self, owner: str, repo: str, branch: str) -> bool: ...

    # -------------------------------------------------------------------------
    # Files
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_file(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str | None = None,
    ) -> FileInfo | list[FileInfo]:
        """Fetch a file, or the entries of a directory.

        Returns:
            FileInfo with decoded-able ``content`` for a file; a list of
            FileInfo without content for a directory.
        """

    @abstractmethod
    async def list_files(self, owner: str, repo: str, path: str = "", ref: str | None = None) -> list[FileInfo]: ...

    @abstractmethod
    async def create_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str | bytes,
        message: str,
        branch: str | None = None,
    ) -> FileInfo: ...

    @abstractmethod
    async def update_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str | bytes,
        message: str,
        sha: str,
        branch: str | None = None,
    ) -> FileInfo:
        """Replace a file's content. ``sha`` is the blob sha being replaced."""

    @abstractmethod
    async def delete_file(
        self,
        owner: str,
        repo: str,
        path: str,
        message: str,
        sha: str,
        branch: str | None = None,
    ) -> bool: ...

    # -------------------------------------------------------------------------
    # Commits
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_commits(
        self,
        owner: str,
        repo: str,
        branch: str | None = None,
        page: int = 1,
        limit: int = 30,
    ) -> list[CommitInfo]: ...

    @abstractmethod
    async def get_commit(self, owner: str, repo: str, sha: str) -> CommitInfo: ...

    @abstractmethod
    async def create_commit(
        self,
        owner: str,
        repo: str,
        message: str,
        files: dict[str, str | bytes],
        branch: str,
    ) -> CommitInfo:
        """Commit several files to ``branch`` as a single commit.

        Args:
            files: Mapping of repository path to new file content
        """

    # -------------------------------------------------------------------------
    # Issues
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_issues(
        self,
        owner: str,
        repo: str,
        state: str = "open",
        page: int = 1,
        limit: int = 30,
    ) -> list[IssueInfo]:
        """List issues (pull requests are excluded).

        Args:
            state: "open", "closed" or "all"
        """

    @abstractmethod
    async def get_issue(self, owner: str, repo: str, number: int) -> IssueInfo: ...

    @abstractmethod
    async def create_issue(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str | None = None,
        assignees: list[str] | None = None,
        labels: list[str] | None = None,
    ) -> IssueInfo: ...

    @abstractmethod
    async def update_issue(self, owner: str, repo: str, number: int, **changes: Any) -> IssueInfo: ...

    @abstractmethod
    async def close_issue(self, owner: str, repo: str, number: int) -> IssueInfo: ...

    # -------------------------------------------------------------------------
    # Pull requests
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_pull_requests(
        self,
        owner: str,
        repo: str,
        state: str = "open",
        page: int = 1,
        limit: int = 30,
    ) -> list[PullRequestInfo]:
        """List pull requests.

        Args:
            state: "open", "closed", "merged" or "all". "merged" is not a
                backend filter; closed pull requests are fetched and only
                the merged ones are kept.
        """

    @abstractmethod
    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequestInfo: ...

    @abstractmethod
    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str,
        body: str | None = None,
    ) -> PullRequestInfo: ...

    @abstractmethod
    async def update_pull_request(self, owner: str, repo: str, number: int, **changes: Any) -> PullRequestInfo: ...

    @abstractmethod
    async def merge_pull_request(
        self,
        owner: str,
        repo: str,
        number: int,
        method: MergeMethod | str = MergeMethod.MERGE,
        title: str | None = None,
        message: str | None = None,
    ) -> PullRequestInfo:
        """Merge a pull request and return its refreshed state."""

    # -------------------------------------------------------------------------
    # Releases
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_releases(self, owner: str, repo: str, page: int = 1, limit: int = 30) -> list[ReleaseInfo]: ...

    @abstractmethod
    async def get_release(self, owner: str, repo: str, release_id: int) -> ReleaseInfo: ...

    @abstractmethod
    async def create_release(
        self,
        owner: str,
        repo: str,
        tag_name: str,
        name: str | None = None,
        body: str | None = None,
        target: str | None = None,
        draft: bool = False,
        prerelease: bool = False,
    ) -> ReleaseInfo: ...

    @abstractmethod
    async def update_release(self, owner: str, repo: str, release_id: int, **changes: Any) -> ReleaseInfo: ...

    @abstractmethod
    async def delete_release(self, owner: str, repo: str, release_id: int) -> bool: ...

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_tags(self, owner: str, repo: str, page: int = 1, limit: int = 30) -> list[TagInfo]: ...

    @abstractmethod
    async def get_tag(self, owner: str, repo: str, tag: str) -> TagInfo: ...

    @abstractmethod
    async def create_tag(
        self,
        owner: str,
        repo: str,
        tag_name: str,
        target: str,
        message: str | None = None,
    ) -> TagInfo:
        """Create a tag on ``target`` (branch name or commit sha).

        A message makes the tag annotated.
        """

    @abstractmethod
    async def delete_tag(self, owner: str, repo: str, tag: str) -> bool: ...

    # -------------------------------------------------------------------------
    # Users and organizations
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_current_user(self) -> UserInfo: ...

    @abstractmethod
    async def get_user(self, username: str) -> UserInfo: ...

    @abstractmethod
    async def list_users(self, page: int = 1, limit: int = 30) -> list[UserInfo]: ...

    @abstractmethod
    async def search_users(self, query: str, page: int = 1, limit: int = 30) -> list[UserInfo]: ...

    @abstractmethod
    async def get_user_organizations(self, username: str) -> list[OrganizationInfo]: ...

    @abstractmethod
    async def get_user_repositories(
        self,
        username: str,
        page: int = 1,
        limit: int = 30,
    ) -> list[RepositoryInfo]: ...

    # -------------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_webhooks(self, owner: str, repo: str) -> list[WebhookInfo]: ...

    @abstractmethod
    async def get_webhook(self, owner: str, repo: str, hook_id: int) -> WebhookInfo: ...

    @abstractmethod
    async def create_webhook(
        self,
        owner: str,
        repo: str,
        url: str,
        events: list[str] | None = None,
        secret: str | None = None,
        content_type: str = "json",
        active: bool = True,
    ) -> WebhookInfo:
        """Create a repository webhook.

        The secret is sent once and never appears on the returned
        WebhookInfo.
        """

    @abstractmethod
    async def update_webhook(
        self,
        owner: str,
        repo: str,
        hook_id: int,
        url: str | None = None,
        events: list[str] | None = None,
        secret: str | None = None,
        active: bool | None = None,
        content_type: str | None = None,
    ) -> WebhookInfo: ...

    @abstractmethod
    async def delete_webhook(self, owner: str, repo: str, hook_id: int) -> bool: ...

    # -------------------------------------------------------------------------
    # Backend-specific helpers
    # -------------------------------------------------------------------------

    @abstractmethod
    async def upload_project(
        self,
        owner: str,
        repo: str,
        project_path: str | Path,
        branch: str | None = None,
        message: str | None = None,
    ) -> UploadResult:
        """Upload every file under ``project_path`` into the repository.

        Build artifacts, VCS metadata and dotfiles are skipped. A file that
        fails to upload is recorded in ``UploadResult.errors`` and the walk
        continues.
        """

    @abstractmethod
    def get_repository_url(self, owner: str, repo: str) -> str:
        """Return the HTTPS clone URL of a repository."""
