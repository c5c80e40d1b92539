"""Shared REST implementation of VcsOperations.

BaseRestProvider implements the whole operation surface in terms of a
composed RestClient and a set of hooks. Concrete providers supply:

- ``get_base_url`` / ``get_headers``: how to reach and authenticate
- ``page_params``: pagination query parameters
- ``normalize_*``: one hook per canonical entity
- the operations whose endpoints genuinely differ between backends
  (branch and tag creation, merges, multi-file commits, user listing)
- ``upload_project`` / ``get_repository_url``

Everything else (HTTP mechanics, error normalization, list unwrapping,
pagination) lives here once.

Key Exports:
    BaseRestProvider: Base class for REST-backed providers.
    parse_timestamp: ISO 8601 parser tolerant of a trailing ``Z``.
    collect_project_files: Directory walker used by upload_project.
"""

from __future__ import annotations

import base64
import os
from abc import abstractmethod
from collections.abc import AsyncIterator, Callable
from datetime import datetime
from pathlib import Path
from typing import Any, ClassVar, TypeVar
from urllib.parse import quote

import httpx
import structlog

from vcs_gateway.config.settings import ProviderConfig
from vcs_gateway.enums import MergeMethod, ProviderKind, PullRequestState
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
    UserInfo,
    WebhookInfo,
)
from vcs_gateway.providers.base import VcsOperations
from vcs_gateway.providers.http import RestClient

log = structlog.get_logger(__name__)

T = TypeVar("T")

SKIPPED_DIRECTORIES = frozenset({".git", "node_modules", "dist", "build", "__pycache__", ".venv", "venv"})
SKIPPED_SUFFIXES = (".log", ".tmp")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp; returns None for missing or bad values."""
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def encode_content(content: str | bytes) -> str:
    """Base64-encode file content for the contents APIs."""
    raw = content.encode("utf-8") if isinstance(content, str) else content
    return base64.b64encode(raw).decode("ascii")


def segment(value: Any) -> str:
    """Quote a single path segment (owner, repo, user name)."""
    return quote(str(value), safe="")


def ref_path(value: str) -> str:
    """Quote a ref or file path, keeping its slashes."""
    return quote(value.strip("/"), safe="/")


def collect_project_files(root: Path) -> list[str]:
    """List uploadable files under ``root`` as sorted POSIX relative paths.

    Skips VCS metadata, dependency and build directories, dotfiles and
    ``*.log`` / ``*.tmp`` files.
    """
    files: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in SKIPPED_DIRECTORIES and not d.startswith(".")]
        for filename in filenames:
            if filename.startswith(".") or filename.endswith(SKIPPED_SUFFIXES):
                continue
            files.append((Path(dirpath) / filename).relative_to(root).as_posix())
    return sorted(files)


def _items(data: Any, key: str | None = None) -> list[Any]:
    """Unwrap a list payload, optionally nested under ``key``."""
    if key is not None and isinstance(data, dict):
        data = data.get(key)
    if data is None:
        return []
    if isinstance(data, list):
        return data
    return [data]


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


class BaseRestProvider(VcsOperations):
    """REST plumbing and generic operations shared by all backends.

    Args:
        config: Provider configuration
        transport: Optional httpx transport override (tests)
    """

    kind: ClassVar[ProviderKind]

    create_file_method: ClassVar[str] = "PUT"
    """HTTP verb used to create a file through the contents API."""

    repository_search_path: ClassVar[str]
    repository_search_key: ClassVar[str | None] = None
    user_search_path: ClassVar[str]
    user_search_key: ClassVar[str | None] = None
    issue_list_params: ClassVar[dict[str, str]] = {}

    def __init__(
        self,
        config: ProviderConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self.name = config.name
        self.api_url = self.get_base_url(config)
        self.client = RestClient(
            provider_name=config.name,
            base_url=self.api_url,
            headers=self.get_headers(config),
            timeout=config.timeout_seconds,
            debug=config.debug,
            max_retries=config.max_retries,
            transport=transport,
        )

    def get_config(self) -> ProviderConfig:
        return self._config

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> BaseRestProvider:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, api_url={self.api_url!r})"

    # -------------------------------------------------------------------------
    # Backend hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    def get_base_url(self, config: ProviderConfig) -> str:
        """Derive the API root from the configured URL."""

    @abstractmethod
    def get_headers(self, config: ProviderConfig) -> dict[str, str]:
        """Authorization and content negotiation headers."""

    @abstractmethod
    def page_params(self, page: int, limit: int) -> dict[str, int]:
        """Query parameters selecting one page of a listing."""

    @abstractmethod
    def normalize_repository(self, data: dict[str, Any]) -> RepositoryInfo: ...

    @abstractmethod
    def normalize_branch(self, data: dict[str, Any]) -> BranchInfo: ...

    @abstractmethod
    def normalize_file(self, data: dict[str, Any]) -> FileInfo: ...

    @abstractmethod
    def normalize_commit(self, data: dict[str, Any]) -> CommitInfo: ...

    @abstractmethod
    def normalize_issue(self, data: dict[str, Any]) -> IssueInfo: ...

    @abstractmethod
    def normalize_pull_request(self, data: dict[str, Any]) -> PullRequestInfo: ...

    @abstractmethod
    def normalize_release(self, data: dict[str, Any]) -> ReleaseInfo: ...

    @abstractmethod
    def normalize_tag(self, data: dict[str, Any]) -> TagInfo: ...

    @abstractmethod
    def normalize_user(self, data: dict[str, Any]) -> UserInfo: ...

    @abstractmethod
    def normalize_organization(self, data: dict[str, Any]) -> OrganizationInfo: ...

    @abstractmethod
    def normalize_webhook(self, data: dict[str, Any]) -> WebhookInfo: ...

    @abstractmethod
    async def _merge(
        self,
        owner: str,
        repo: str,
        number: int,
        method: MergeMethod,
        title: str | None,
        message: str | None,
    ) -> None:
        """Issue the backend's merge call."""

    @abstractmethod
    def _webhook_payload(
        self,
        url: str,
        events: list[str],
        secret: str | None,
        content_type: str,
        active: bool,
    ) -> dict[str, Any]:
        """Body of a webhook creation request."""

    async def _resolve_labels(self, owner: str, repo: str, labels: list[str]) -> list[Any]:
        """Translate label names into what the backend expects."""
        return labels

    async def _replace_issue_labels(self, owner: str, repo: str, number: int, labels: list[str]) -> None:
        await self.client.patch(f"{self._repo(owner, repo)}/issues/{number}", json={"labels": labels})

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _repo(owner: str, repo: str) -> str:
        return f"/repos/{segment(owner)}/{segment(repo)}"

    async def _list(
        self,
        path: str,
        normalize: Callable[[dict[str, Any]], T],
        page: int = 1,
        limit: int = 30,
        params: dict[str, Any] | None = None,
        key: str | None = None,
    ) -> list[T]:
        data = await self.client.get(path, {**(params or {}), **self.page_params(page, limit)})
        return [normalize(item) for item in _items(data, key)]

    async def iter_pages(
        self,
        path: str,
        normalize: Callable[[dict[str, Any]], T],
        *,
        params: dict[str, Any] | None = None,
        limit: int = 50,
        key: str | None = None,
    ) -> AsyncIterator[T]:
        """Yield every item of a paginated listing.

        Pages are fetched lazily until one comes back shorter than ``limit``.

        Example:
            >>> async for repo in provider.iter_pages("/user/repos", provider.normalize_repository):
            ...     print(repo.full_name)
        """
        page = 1
        while True:
            data = await self.client.get(path, {**(params or {}), **self.page_params(page, limit)})
            items = _items(data, key)
            for item in items:
                yield normalize(item)
            if len(items) < limit:
                return
            page += 1

    # -------------------------------------------------------------------------
    # Repositories
    # -------------------------------------------------------------------------

    async def list_repositories(
        self,
        username: str | None = None,
        page: int = 1,
        limit: int = 30,
    ) -> list[RepositoryInfo]:
        user = username or self._config.username
        path = f"/users/{segment(user)}/repos" if user else "/user/repos"
        return await self._list(path, self.normalize_repository, page, limit)

    async def get_repository(self, owner: str, repo: str) -> RepositoryInfo:
        return self.normalize_repository(await self.client.get(self._repo(owner, repo)))

    async def create_repository(
        self,
        name: str,
        description: str | None = None,
        private: bool = False,
        auto_init: bool = False,
    ) -> RepositoryInfo:
        log.info("create_repository", provider=self.name, name=name, private=private)
        data = await self.client.post(
            "/user/repos",
            json=_compact({"name": name, "description": description, "private": private, "auto_init": auto_init}),
        )
        return self.normalize_repository(data)

    async def update_repository(self, owner: str, repo: str, **changes: Any) -> RepositoryInfo:
        data = await self.client.patch(self._repo(owner, repo), json=_compact(changes))
        return self.normalize_repository(data)

    async def delete_repository(self, owner: str, repo: str) -> bool:
        log.info("delete_repository", provider=self.name, owner=owner, repo=repo)
        await self.client.delete(self._repo(owner, repo))
        return True

    async def fork_repository(self, owner: str, repo: str, organization: str | None = None) -> RepositoryInfo:
        data = await self.client.post(
            f"{self._repo(owner, repo)}/forks",
            json=_compact({"organization": organization}),
        )
        return self.normalize_repository(data)

    async def search_repositories(self, query: str, page: int = 1, limit: int = 30) -> list[RepositoryInfo]:
        return await self._list(
            self.repository_search_path,
            self.normalize_repository,
            page,
            limit,
            params={"q": query},
            key=self.repository_search_key,
        )

    # -------------------------------------------------------------------------
    # Branches
    # -------------------------------------------------------------------------

    async def list_branches(self, owner: str, repo: str, page: int = 1, limit: int = 30) -> list[BranchInfo]:
        return await self._list(f"{self._repo(owner, repo)}/branches", self.normalize_branch, page, limit)

    async def get_branch(self, owner: str, repo: str, branch: str) -> BranchInfo:
        data = await self.client.get(f"{self._repo(owner, repo)}/branches/{ref_path(branch)}")
        return self.normalize_branch(data)

    # -------------------------------------------------------------------------
    # Files
    # -------------------------------------------------------------------------

    def _contents_path(self, owner: str, repo: str, path: str) -> str:
        base = f"{self._repo(owner, repo)}/contents"
        return f"{base}/{ref_path(path)}" if path.strip("/") else base

    async def get_file(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str | None = None,
    ) -> FileInfo | list[FileInfo]:
        data = await self.client.get(self._contents_path(owner, repo, path), {"ref": ref})
        if isinstance(data, list):
            return [self.normalize_file(item) for item in data]
        return self.normalize_file(data)

    async def list_files(self, owner: str, repo: str, path: str = "", ref: str | None = None) -> list[FileInfo]:
        data = await self.client.get(self._contents_path(owner, repo, path), {"ref": ref})
        return [self.normalize_file(item) for item in _items(data)]

    async def create_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str | bytes,
        message: str,
        branch: str | None = None,
    ) -> FileInfo:
        log.info("create_file", provider=self.name, path=path, branch=branch)
        data = await self.client.request(
            self.create_file_method,
            self._contents_path(owner, repo, path),
            json=_compact({"message": message, "content": encode_content(content), "branch": branch}),
        )
        return self.normalize_file(data["content"])

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
        log.info("update_file", provider=self.name, path=path, branch=branch)
        data = await self.client.put(
            self._contents_path(owner, repo, path),
            json=_compact({"message": message, "content": encode_content(content), "sha": sha, "branch": branch}),
        )
        return self.normalize_file(data["content"])

    async def delete_file(
        self,
        owner: str,
        repo: str,
        path: str,
        message: str,
        sha: str,
        branch: str | None = None,
    ) -> bool:
        log.info("delete_file", provider=self.name, path=path, branch=branch)
        await self.client.delete(
            self._contents_path(owner, repo, path),
            json=_compact({"message": message, "sha": sha, "branch": branch}),
        )
        return True

    # -------------------------------------------------------------------------
    # Commits
    # -------------------------------------------------------------------------

    async def list_commits(
        self,
        owner: str,
        repo: str,
        branch: str | None = None,
        page: int = 1,
        limit: int = 30,
    ) -> list[CommitInfo]:
        return await self._list(
            f"{self._repo(owner, repo)}/commits",
            self.normalize_commit,
            page,
            limit,
            params={"sha": branch},
        )

    async def get_commit(self, owner: str, repo: str, sha: str) -> CommitInfo:
        data = await self.client.get(f"{self._repo(owner, repo)}/commits/{segment(sha)}")
        return self.normalize_commit(data)

    # -------------------------------------------------------------------------
    # Issues
    # -------------------------------------------------------------------------

    async def list_issues(
        self,
        owner: str,
        repo: str,
        state: str = "open",
        page: int = 1,
        limit: int = 30,
    ) -> list[IssueInfo]:
        data = await self.client.get(
            f"{self._repo(owner, repo)}/issues",
            {"state": state, **self.issue_list_params, **self.page_params(page, limit)},
        )
        # both backends can list pull requests through the issues endpoint
        return [self.normalize_issue(item) for item in _items(data) if not item.get("pull_request")]

    async def get_issue(self, owner: str, repo: str, number: int) -> IssueInfo:
        return self.normalize_issue(await self.client.get(f"{self._repo(owner, repo)}/issues/{number}"))

    async def create_issue(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str | None = None,
        assignees: list[str] | None = None,
        labels: list[str] | None = None,
    ) -> IssueInfo:
        log.info("create_issue", provider=self.name, owner=owner, repo=repo, title=title)
        payload: dict[str, Any] = _compact({"title": title, "body": body, "assignees": assignees})
        if labels:
            payload["labels"] = await self._resolve_labels(owner, repo, labels)

        data = await self.client.post(f"{self._repo(owner, repo)}/issues", json=payload)
        return self.normalize_issue(data)

    async def update_issue(self, owner: str, repo: str, number: int, **changes: Any) -> IssueInfo:
        log.info("update_issue", provider=self.name, owner=owner, repo=repo, number=number)
        labels = changes.pop("labels", None)
        if labels is not None:
            await self._replace_issue_labels(owner, repo, number, labels)

        fields = _compact(changes)
        if not fields:
            return await self.get_issue(owner, repo, number)

        data = await self.client.patch(f"{self._repo(owner, repo)}/issues/{number}", json=fields)
        return self.normalize_issue(data)

    async def close_issue(self, owner: str, repo: str, number: int) -> IssueInfo:
        return await self.update_issue(owner, repo, number, state="closed")

    # -------------------------------------------------------------------------
    # Pull requests
    # -------------------------------------------------------------------------

    async def list_pull_requests(
        self,
        owner: str,
        repo: str,
        state: str = "open",
        page: int = 1,
        limit: int = 30,
    ) -> list[PullRequestInfo]:
        merged_only = state == PullRequestState.MERGED.value
        pulls = await self._list(
            f"{self._repo(owner, repo)}/pulls",
            self.normalize_pull_request,
            page,
            limit,
            params={"state": "closed" if merged_only else state},
        )
        if merged_only:
            return [pr for pr in pulls if pr.state == PullRequestState.MERGED]
        return pulls

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequestInfo:
        return self.normalize_pull_request(await self.client.get(f"{self._repo(owner, repo)}/pulls/{number}"))

    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str,
        body: str | None = None,
    ) -> PullRequestInfo:
        log.info("create_pull_request", provider=self.name, title=title, head=head, base=base)
        data = await self.client.post(
            f"{self._repo(owner, repo)}/pulls",
            json=_compact({"title": title, "head": head, "base": base, "body": body}),
        )
        return self.normalize_pull_request(data)

    async def update_pull_request(self, owner: str, repo: str, number: int, **changes: Any) -> PullRequestInfo:
        data = await self.client.patch(f"{self._repo(owner, repo)}/pulls/{number}", json=_compact(changes))
        return self.normalize_pull_request(data)

    async def merge_pull_request(
        self,
        owner: str,
        repo: str,
        number: int,
        method: MergeMethod | str = MergeMethod.MERGE,
        title: str | None = None,
        message: str | None = None,
    ) -> PullRequestInfo:
        merge_method = MergeMethod(method)
        log.info("merge_pull_request", provider=self.name, number=number, method=merge_method.value)
        await self._merge(owner, repo, number, merge_method, title, message)
        return await self.get_pull_request(owner, repo, number)

    # -------------------------------------------------------------------------
    # Releases
    # -------------------------------------------------------------------------

    async def list_releases(self, owner: str, repo: str, page: int = 1, limit: int = 30) -> list[ReleaseInfo]:
        return await self._list(f"{self._repo(owner, repo)}/releases", self.normalize_release, page, limit)

    async def get_release(self, owner: str, repo: str, release_id: int) -> ReleaseInfo:
        return self.normalize_release(await self.client.get(f"{self._repo(owner, repo)}/releases/{release_id}"))

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
    ) -> ReleaseInfo:
        log.info("create_release", provider=self.name, owner=owner, repo=repo, tag=tag_name)
        data = await self.client.post(
            f"{self._repo(owner, repo)}/releases",
            json=_compact(
                {
                    "tag_name": tag_name,
                    "name": name or tag_name,
                    "body": body,
                    "target_commitish": target,
                    "draft": draft,
                    "prerelease": prerelease,
                }
            ),
        )
        return self.normalize_release(data)

    async def update_release(self, owner: str, repo: str, release_id: int, **changes: Any) -> ReleaseInfo:
        if "target" in changes:
            changes["target_commitish"] = changes.pop("target")
        data = await self.client.patch(f"{self._repo(owner, repo)}/releases/{release_id}", json=_compact(changes))
        return self.normalize_release(data)

    async def delete_release(self, owner: str, repo: str, release_id: int) -> bool:
        await self.client.delete(f"{self._repo(owner, repo)}/releases/{release_id}")
        return True

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    async def list_tags(self, owner: str, repo: str, page: int = 1, limit: int = 30) -> list[TagInfo]:
        return await self._list(f"{self._repo(owner, repo)}/tags", self.normalize_tag, page, limit)

    # -------------------------------------------------------------------------
    # Users and organizations
    # -------------------------------------------------------------------------

    async def get_current_user(self) -> UserInfo:
        return self.normalize_user(await self.client.get("/user"))

    async def get_user(self, username: str) -> UserInfo:
        return self.normalize_user(await self.client.get(f"/users/{segment(username)}"))

    async def search_users(self, query: str, page: int = 1, limit: int = 30) -> list[UserInfo]:
        return await self._list(
            self.user_search_path,
            self.normalize_user,
            page,
            limit,
            params={"q": query},
            key=self.user_search_key,
        )

    async def get_user_organizations(self, username: str) -> list[OrganizationInfo]:
        path = f"/users/{segment(username)}/orgs"
        return [org async for org in self.iter_pages(path, self.normalize_organization)]

    async def get_user_repositories(
        self,
        username: str,
        page: int = 1,
        limit: int = 30,
    ) -> list[RepositoryInfo]:
        return await self._list(f"/users/{segment(username)}/repos", self.normalize_repository, page, limit)

    # -------------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------------

    async def list_webhooks(self, owner: str, repo: str) -> list[WebhookInfo]:
        path = f"{self._repo(owner, repo)}/hooks"
        return [hook async for hook in self.iter_pages(path, self.normalize_webhook)]

    async def get_webhook(self, owner: str, repo: str, hook_id: int) -> WebhookInfo:
        return self.normalize_webhook(await self.client.get(f"{self._repo(owner, repo)}/hooks/{hook_id}"))

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
        log.info("create_webhook", provider=self.name, owner=owner, repo=repo, url=url)
        payload = self._webhook_payload(url, events or ["push"], secret, content_type, active)
        data = await self.client.post(f"{self._repo(owner, repo)}/hooks", json=payload)
        return self.normalize_webhook(data)

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
    ) -> WebhookInfo:
        payload: dict[str, Any] = _compact({"events": events, "active": active})
        config = _compact({"url": url, "secret": secret, "content_type": content_type})
        if config:
            payload["config"] = config

        data = await self.client.patch(f"{self._repo(owner, repo)}/hooks/{hook_id}", json=payload)
        return self.normalize_webhook(data)

    async def delete_webhook(self, owner: str, repo: str, hook_id: int) -> bool:
        await self.client.delete(f"{self._repo(owner, repo)}/hooks/{hook_id}")
        return True
