"""Gitea provider implementation using direct REST API calls."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog

from vcs_gateway.config.settings import ProviderConfig
from vcs_gateway.enums import ErrorCode, FileType, IssueState, MergeMethod, ProviderKind, PullRequestState
from vcs_gateway.exceptions import ProviderRequestError
from vcs_gateway.models.domain import (
    BranchInfo,
    CommitInfo,
    CommitRef,
    FileInfo,
    GitActor,
    IssueInfo,
    OrganizationInfo,
    PullRequestInfo,
    PullRequestRef,
    ReleaseAsset,
    ReleaseInfo,
    RepositoryInfo,
    RepositoryOwner,
    StandardError,
    TagInfo,
    UploadResult,
    UserInfo,
    UserRef,
    WebhookConfig,
    WebhookInfo,
)
from vcs_gateway.providers.rest_base import (
    BaseRestProvider,
    collect_project_files,
    encode_content,
    parse_timestamp,
    ref_path,
    segment,
)

log = structlog.get_logger(__name__)

API_SUFFIX = "/api/v1"


def _login(user: dict[str, Any] | None) -> str:
    # older Gitea releases only send "username"
    if not user:
        return ""
    return user.get("login") or user.get("username") or ""


def _actor(data: dict[str, Any] | None) -> GitActor:
    data = data or {}
    return GitActor(name=data.get("name", ""), email=data.get("email"), date=parse_timestamp(data.get("date")))


class GiteaRestProvider(BaseRestProvider):
    """Gitea implementation of VcsOperations.

    Args:
        config: Provider configuration. ``api_url`` may be the instance root
            (``http://gitea:3000``), ``.../api`` or ``.../api/v1``.
        transport: Optional httpx transport override
    """

    kind = ProviderKind.GITEA
    create_file_method = "POST"
    repository_search_path = "/repos/search"
    repository_search_key = "data"
    user_search_path = "/users/search"
    user_search_key = "data"
    issue_list_params = {"type": "issues"}

    def get_base_url(self, config: ProviderConfig) -> str:
        url = config.api_url.rstrip("/")
        if url.endswith(API_SUFFIX):
            return url
        if url.endswith("/api"):
            return f"{url}/v1"
        return f"{url}{API_SUFFIX}"

    def get_headers(self, config: ProviderConfig) -> dict[str, str]:
        return {
            "Authorization": f"token {config.token.get_secret_value().strip()}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def page_params(self, page: int, limit: int) -> dict[str, int]:
        return {"page": page, "limit": limit}

    @property
    def web_url(self) -> str:
        """Instance root, i.e. the API URL without ``/api/v1``."""
        return self.api_url.removesuffix(API_SUFFIX)

    def get_repository_url(self, owner: str, repo: str) -> str:
        return f"{self.web_url}/{owner}/{repo}.git"

    # -------------------------------------------------------------------------
    # Normalization
    # -------------------------------------------------------------------------

    def normalize_repository(self, data: dict[str, Any]) -> RepositoryInfo:
        """Normalize a Gitea repository payload.

        Field mappings:
            - data["owner"]["login"] (or "username") -> owner.login
            - data["owner"]["login"] + data["name"] -> full_name
            - data["default_branch"] -> default_branch
            - data["clone_url"] / data["ssh_url"] / data["html_url"] -> URLs
        """
        owner = data.get("owner") or {}
        login = _login(owner)
        return RepositoryInfo(
            id=data["id"],
            name=data["name"],
            full_name=f"{login}/{data['name']}",
            owner=RepositoryOwner(login=login, type=owner.get("type") or "User", id=owner.get("id")),
            description=data.get("description") or None,
            private=bool(data.get("private", False)),
            fork=bool(data.get("fork", False)),
            default_branch=data.get("default_branch") or "main",
            clone_url=data.get("clone_url"),
            ssh_url=data.get("ssh_url"),
            html_url=data.get("html_url"),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
            raw=data,
        )

    def normalize_branch(self, data: dict[str, Any]) -> BranchInfo:
        # Gitea names the commit hash "id"
        commit = data.get("commit") or {}
        return BranchInfo(
            name=data["name"],
            commit=CommitRef(sha=commit.get("id") or commit.get("sha", ""), url=commit.get("url")),
            protected=bool(data.get("protected", False)),
            raw=data,
        )

    def normalize_file(self, data: dict[str, Any]) -> FileInfo:
        file_type = FileType.DIR if data.get("type") == "dir" else FileType.FILE
        is_file = file_type == FileType.FILE and data.get("content") is not None
        return FileInfo(
            path=data["path"],
            name=data.get("name") or data["path"].rsplit("/", 1)[-1],
            sha=data.get("sha", ""),
            size=data.get("size") or 0,
            type=file_type,
            content=data.get("content") if is_file else None,
            encoding=data.get("encoding") if is_file else None,
            download_url=data.get("download_url"),
            html_url=data.get("html_url"),
            raw=data,
        )

    def normalize_commit(self, data: dict[str, Any]) -> CommitInfo:
        """Normalize a commit.

        Accepts both the nested shape of the commits endpoints (git data
        under ``commit``) and the flat shape returned after a contents
        change.
        """
        git_data = data.get("commit") if isinstance(data.get("commit"), dict) else data
        return CommitInfo(
            sha=data.get("sha") or data.get("id", ""),
            message=git_data.get("message", ""),
            author=_actor(git_data.get("author")),
            committer=_actor(git_data.get("committer")),
            url=data.get("url"),
            html_url=data.get("html_url"),
            parents=tuple(parent["sha"] for parent in data.get("parents") or [] if parent.get("sha")),
            raw=data,
        )

    def normalize_issue(self, data: dict[str, Any]) -> IssueInfo:
        user = data.get("user") or {}
        return IssueInfo(
            id=data["id"],
            number=data["number"],
            title=data["title"],
            state=IssueState.OPEN if data.get("state") == "open" else IssueState.CLOSED,
            user=UserRef(login=_login(user), id=user.get("id")),
            body=data.get("body") or None,
            labels=tuple(label["name"] for label in data.get("labels") or []),
            assignees=tuple(_login(assignee) for assignee in data.get("assignees") or []),
            html_url=data.get("html_url"),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
            closed_at=parse_timestamp(data.get("closed_at")),
            raw=data,
        )

    def normalize_pull_request(self, data: dict[str, Any]) -> PullRequestInfo:
        user = data.get("user") or {}
        head = data.get("head") or {}
        base = data.get("base") or {}
        merged = bool(data.get("merged")) or bool(data.get("merged_at"))

        if merged:
            state = PullRequestState.MERGED
        elif data.get("state") == "open":
            state = PullRequestState.OPEN
        else:
            state = PullRequestState.CLOSED

        return PullRequestInfo(
            id=data["id"],
            number=data["number"],
            title=data["title"],
            state=state,
            user=UserRef(login=_login(user), id=user.get("id")),
            head=PullRequestRef(ref=head.get("ref", ""), sha=head.get("sha"), label=head.get("label")),
            base=PullRequestRef(ref=base.get("ref", ""), sha=base.get("sha"), label=base.get("label")),
            body=data.get("body") or None,
            merged=merged,
            mergeable=data.get("mergeable"),
            html_url=data.get("html_url"),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
            closed_at=parse_timestamp(data.get("closed_at")),
            merged_at=parse_timestamp(data.get("merged_at")),
            raw=data,
        )

    def normalize_release(self, data: dict[str, Any]) -> ReleaseInfo:
        return ReleaseInfo(
            id=data["id"],
            tag_name=data["tag_name"],
            name=data.get("name") or None,
            body=data.get("body") or None,
            draft=bool(data.get("draft", False)),
            prerelease=bool(data.get("prerelease", False)),
            target_commitish=data.get("target_commitish"),
            html_url=data.get("html_url"),
            tarball_url=data.get("tarball_url"),
            zipball_url=data.get("zipball_url"),
            assets=tuple(
                ReleaseAsset(
                    id=asset["id"],
                    name=asset["name"],
                    size=asset.get("size") or 0,
                    download_url=asset.get("browser_download_url"),
                )
                for asset in data.get("assets") or []
            ),
            created_at=parse_timestamp(data.get("created_at")),
            published_at=parse_timestamp(data.get("published_at")),
            raw=data,
        )

    def normalize_tag(self, data: dict[str, Any]) -> TagInfo:
        commit = data.get("commit") or {}
        return TagInfo(
            name=data["name"],
            commit=CommitRef(sha=commit.get("sha", ""), url=commit.get("url")),
            message=(data.get("message") or "").strip() or None,
            tarball_url=data.get("tarball_url"),
            zipball_url=data.get("zipball_url"),
            raw=data,
        )

    def normalize_user(self, data: dict[str, Any]) -> UserInfo:
        return UserInfo(
            id=data["id"],
            login=_login(data),
            name=data.get("full_name") or None,
            email=data.get("email") or None,
            avatar_url=data.get("avatar_url"),
            html_url=data.get("html_url"),
            type="Organization" if data.get("type") == "organization" else "User",
            raw=data,
        )

    def normalize_organization(self, data: dict[str, Any]) -> OrganizationInfo:
        # Gitea organizations use "name" as the login and "full_name" as the display name
        return OrganizationInfo(
            id=data["id"],
            login=data.get("username") or data.get("name", ""),
            name=data.get("full_name") or None,
            description=data.get("description") or None,
            avatar_url=data.get("avatar_url"),
            raw=data,
        )

    def normalize_webhook(self, data: dict[str, Any]) -> WebhookInfo:
        config = data.get("config") or {}
        return WebhookInfo(
            id=data["id"],
            type=data.get("type") or "gitea",
            events=tuple(data.get("events") or ()),
            config=WebhookConfig(url=config.get("url", ""), content_type=config.get("content_type", "json")),
            active=bool(data.get("active", True)),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
            raw=data,
        )

    # -------------------------------------------------------------------------
    # Gitea-specific endpoints
    # -------------------------------------------------------------------------

    async def list_repositories(
        self,
        username: str | None = None,
        page: int = 1,
        limit: int = 30,
    ) -> list[RepositoryInfo]:
        """List repositories, falling back to the authenticated user's.

        ``/users/{username}/repos`` answers 404 for organizations and for
        unknown users; the authenticated listing is used instead.
        """
        user = username or self._config.username
        if user:
            try:
                return await self._list(f"/users/{segment(user)}/repos", self.normalize_repository, page, limit)
            except ProviderRequestError as e:
                if e.code != ErrorCode.NOT_FOUND:
                    raise
                log.info("gitea_user_repos_fallback", username=user)
        return await self._list("/user/repos", self.normalize_repository, page, limit)

    async def fork_repository(self, owner: str, repo: str, organization: str | None = None) -> RepositoryInfo:
        """Fork a repository; an existing fork (HTTP 409) is returned as is."""
        try:
            return await super().fork_repository(owner, repo, organization)
        except ProviderRequestError as e:
            if e.status_code != 409:
                raise
            fork_owner = organization or (await self.get_current_user()).login
            log.info("gitea_fork_exists", owner=fork_owner, repo=repo)
            return await self.get_repository(fork_owner, repo)

    async def create_branch(self, owner: str, repo: str, branch: str, from_branch: str) -> BranchInfo:
        log.info("create_branch", provider=self.name, branch=branch, from_branch=from_branch)
        data = await self.client.post(
            f"{self._repo(owner, repo)}/branches",
            json={"new_branch_name": branch, "old_branch_name": from_branch},
        )
        return self.normalize_branch(data)

    async def delete_branch(self, owner: str, repo: str, branch: str) -> bool:
        log.info("delete_branch", provider=self.name, branch=branch)
        await self.client.delete(f"{self._repo(owner, repo)}/branches/{ref_path(branch)}")
        return True

    async def get_commit(self, owner: str, repo: str, sha: str) -> CommitInfo:
        data = await self.client.get(f"{self._repo(owner, repo)}/git/commits/{segment(sha)}")
        return self.normalize_commit(data)

    async def create_commit(
        self,
        owner: str,
        repo: str,
        message: str,
        files: dict[str, str | bytes],
        branch: str,
    ) -> CommitInfo:
        """Commit several files at once through the multi-file contents API.

        Each path is looked up on ``branch`` first: existing files are
        updated against their current sha, missing ones are created.
        """
        log.info("create_commit", provider=self.name, branch=branch, files=len(files))
        changes: list[dict[str, Any]] = []
        for path, content in files.items():
            change: dict[str, Any] = {"path": path, "content": encode_content(content)}
            try:
                existing = await self.get_file(owner, repo, path, ref=branch)
            except ProviderRequestError as e:
                if e.code != ErrorCode.NOT_FOUND:
                    raise
                change["operation"] = "create"
            else:
                if isinstance(existing, list):
                    raise ProviderRequestError(
                        self._validation_error(f"{path} is a directory and cannot be committed as a file")
                    )
                change["operation"] = "update"
                change["sha"] = existing.sha
            changes.append(change)

        data = await self.client.post(
            f"{self._repo(owner, repo)}/contents",
            json={"files": changes, "message": message, "branch": branch},
        )
        return self.normalize_commit(data["commit"])

    def _validation_error(self, message: str) -> StandardError:
        return StandardError(
            code=ErrorCode.VALIDATION_ERROR,
            message=f"{self.name}: {message}",
            provider=self.name,
            retryable=False,
        )

    async def _merge(
        self,
        owner: str,
        repo: str,
        number: int,
        method: MergeMethod,
        title: str | None,
        message: str | None,
    ) -> None:
        payload: dict[str, Any] = {"Do": method.value}
        if title:
            payload["merge_title_field"] = title
        if message:
            payload["merge_message_field"] = message
        await self.client.post(f"{self._repo(owner, repo)}/pulls/{number}/merge", json=payload)

    async def get_tag(self, owner: str, repo: str, tag: str) -> TagInfo:
        return self.normalize_tag(await self.client.get(f"{self._repo(owner, repo)}/tags/{ref_path(tag)}"))

    async def create_tag(
        self,
        owner: str,
        repo: str,
        tag_name: str,
        target: str,
        message: str | None = None,
    ) -> TagInfo:
        log.info("create_tag", provider=self.name, tag=tag_name, target=target)
        payload: dict[str, Any] = {"tag_name": tag_name, "target": target}
        if message:
            payload["message"] = message
        return self.normalize_tag(await self.client.post(f"{self._repo(owner, repo)}/tags", json=payload))

    async def delete_tag(self, owner: str, repo: str, tag: str) -> bool:
        await self.client.delete(f"{self._repo(owner, repo)}/tags/{ref_path(tag)}")
        return True

    async def list_users(self, page: int = 1, limit: int = 30) -> list[UserInfo]:
        # an empty search lists every user visible to the token
        return await self._list("/users/search", self.normalize_user, page, limit, key="data")

    def _webhook_payload(
        self,
        url: str,
        events: list[str],
        secret: str | None,
        content_type: str,
        active: bool,
    ) -> dict[str, Any]:
        config = {"url": url, "content_type": content_type}
        if secret:
            config["secret"] = secret
        return {"type": "gitea", "config": config, "events": events, "active": active}

    async def _resolve_labels(self, owner: str, repo: str, labels: list[str]) -> list[Any]:
        """Resolve label names to IDs, creating missing labels.

        Gitea requires label IDs (not names) when creating or updating
        issues. Order of the returned IDs follows ``labels``. Missing labels
        are created with a neutral gray color.
        """
        labels_path = f"{self._repo(owner, repo)}/labels"
        existing = await self.client.get(labels_path)
        label_map = {label["name"]: label["id"] for label in existing or []}

        label_ids = []
        for name in labels:
            if name in label_map:
                label_ids.append(label_map[name])
                continue
            log.info("creating_label", provider=self.name, name=name)
            created = await self.client.post(labels_path, json={"name": name, "color": "#ededed"})
            label_map[name] = created["id"]
            label_ids.append(created["id"])

        return label_ids

    async def _replace_issue_labels(self, owner: str, repo: str, number: int, labels: list[str]) -> None:
        # Gitea ignores labels on PATCH; they have their own endpoint
        label_ids = await self._resolve_labels(owner, repo, labels) if labels else []
        await self.client.put(f"{self._repo(owner, repo)}/issues/{number}/labels", json={"labels": label_ids})

    async def upload_project(
        self,
        owner: str,
        repo: str,
        project_path: str | Path,
        branch: str | None = None,
        message: str | None = None,
    ) -> UploadResult:
        """Create every project file through the contents API, one commit each.

        Files that already exist are reported as errors rather than
        overwritten.
        """
        root = Path(project_path)
        result = UploadResult()
        for relative in collect_project_files(root):
            try:
                await self.create_file(
                    owner,
                    repo,
                    relative,
                    (root / relative).read_bytes(),
                    message or f"Add {relative}",
                    branch=branch,
                )
            except (ProviderRequestError, OSError) as e:
                log.warning("upload_file_failed", provider=self.name, path=relative, error=str(e))
                result.errors.append(f"{relative}: {e}")
            else:
                result.uploaded.append(relative)

        log.info("upload_project_complete", provider=self.name, uploaded=len(result.uploaded), errors=len(result.errors))
        return result
