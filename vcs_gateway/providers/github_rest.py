"""GitHub provider implementation using direct REST API calls.

Talks to api.github.com (or a GitHub Enterprise ``/api/v3`` root) with
httpx. Branch, tag and multi-file commit operations go through the git
data API (refs, blobs, trees, commits), since the high-level endpoints
GitHub offers for them are either missing or read-only.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import structlog

from vcs_gateway.config.settings import GITHUB_API_URL, ProviderConfig
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
)

log = structlog.get_logger(__name__)

API_VERSION = "2022-11-28"
_SHA_PATTERN = re.compile(r"^[0-9a-f]{40}$")


def _actor(data: dict[str, Any] | None) -> GitActor:
    data = data or {}
    return GitActor(name=data.get("name", ""), email=data.get("email"), date=parse_timestamp(data.get("date")))


def _user_ref(data: dict[str, Any] | None) -> UserRef:
    data = data or {}
    return UserRef(login=data.get("login", ""), id=data.get("id"))


class GitHubRestProvider(BaseRestProvider):
    """GitHub implementation of VcsOperations."""

    kind = ProviderKind.GITHUB
    create_file_method = "PUT"
    repository_search_path = "/search/repositories"
    repository_search_key = "items"
    user_search_path = "/search/users"
    user_search_key = "items"

    def get_base_url(self, config: ProviderConfig) -> str:
        return (config.api_url or GITHUB_API_URL).rstrip("/")

    def get_headers(self, config: ProviderConfig) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {config.token.get_secret_value().strip()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": "vcs-gateway",
        }

    def page_params(self, page: int, limit: int) -> dict[str, int]:
        return {"page": page, "per_page": limit}

    def get_repository_url(self, owner: str, repo: str) -> str:
        if self.api_url == GITHUB_API_URL:
            return f"https://github.com/{owner}/{repo}.git"
        # GitHub Enterprise serves the API under /api/v3 on the web host
        return f"{self.api_url.removesuffix('/api/v3')}/{owner}/{repo}.git"

    # -------------------------------------------------------------------------
    # Normalization
    # -------------------------------------------------------------------------

    def normalize_repository(self, data: dict[str, Any]) -> RepositoryInfo:
        owner = data.get("owner") or {}
        login = owner.get("login", "")
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
        commit = data.get("commit") or {}
        return BranchInfo(
            name=data["name"],
            commit=CommitRef(sha=commit.get("sha", ""), url=commit.get("url")),
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

        The commits endpoints nest git data under ``commit``; the git data
        API returns it flat. Both are accepted.
        """
        git_data = data.get("commit") if isinstance(data.get("commit"), dict) else data
        return CommitInfo(
            sha=data["sha"],
            message=git_data.get("message", ""),
            author=_actor(git_data.get("author")),
            committer=_actor(git_data.get("committer")),
            url=data.get("url"),
            html_url=data.get("html_url"),
            parents=tuple(parent["sha"] for parent in data.get("parents") or [] if parent.get("sha")),
            raw=data,
        )

    def normalize_issue(self, data: dict[str, Any]) -> IssueInfo:
        return IssueInfo(
            id=data["id"],
            number=data["number"],
            title=data["title"],
            state=IssueState.OPEN if data.get("state") == "open" else IssueState.CLOSED,
            user=_user_ref(data.get("user")),
            body=data.get("body") or None,
            labels=tuple(label["name"] if isinstance(label, dict) else label for label in data.get("labels") or []),
            assignees=tuple(assignee["login"] for assignee in data.get("assignees") or []),
            html_url=data.get("html_url"),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
            closed_at=parse_timestamp(data.get("closed_at")),
            raw=data,
        )

    def normalize_pull_request(self, data: dict[str, Any]) -> PullRequestInfo:
        head = data.get("head") or {}
        base = data.get("base") or {}
        # list responses omit "merged"; merged_at is always present
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
            user=_user_ref(data.get("user")),
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
        """Normalize a tag.

        Three payload shapes are accepted:
            - tag listing entry: ``{"name", "commit": {"sha", "url"}}``
            - git ref: ``{"ref": "refs/tags/v1", "object": {"sha"}}``
            - annotated tag object: ``{"tag", "message", "object": {"sha"}}``
        """
        if "commit" in data:
            commit = data.get("commit") or {}
            name = data["name"]
            commit_ref = CommitRef(sha=commit.get("sha", ""), url=commit.get("url"))
        else:
            target = data.get("object") or {}
            name = data.get("tag") or data.get("ref", "").removeprefix("refs/tags/")
            commit_ref = CommitRef(sha=target.get("sha", ""), url=target.get("url"))

        return TagInfo(
            name=name,
            commit=commit_ref,
            message=(data.get("message") or "").strip() or None,
            tarball_url=data.get("tarball_url"),
            zipball_url=data.get("zipball_url"),
            raw=data,
        )

    def normalize_user(self, data: dict[str, Any]) -> UserInfo:
        return UserInfo(
            id=data["id"],
            login=data["login"],
            name=data.get("name") or None,
            email=data.get("email") or None,
            avatar_url=data.get("avatar_url"),
            html_url=data.get("html_url"),
            type=data.get("type") or "User",
            raw=data,
        )

    def normalize_organization(self, data: dict[str, Any]) -> OrganizationInfo:
        return OrganizationInfo(
            id=data["id"],
            login=data["login"],
            name=data.get("name") or None,
            description=data.get("description") or None,
            avatar_url=data.get("avatar_url"),
            raw=data,
        )

    def normalize_webhook(self, data: dict[str, Any]) -> WebhookInfo:
        config = data.get("config") or {}
        return WebhookInfo(
            id=data["id"],
            type=data.get("name") or data.get("type") or "web",
            events=tuple(data.get("events") or ()),
            config=WebhookConfig(url=config.get("url", ""), content_type=config.get("content_type", "json")),
            active=bool(data.get("active", True)),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
            raw=data,
        )

    # -------------------------------------------------------------------------
    # GitHub-specific endpoints
    # -------------------------------------------------------------------------

    async def _resolve_sha(self, owner: str, repo: str, target: str) -> str:
        if _SHA_PATTERN.match(target):
            return target
        return (await self.get_branch(owner, repo, target)).commit.sha

    async def create_branch(self, owner: str, repo: str, branch: str, from_branch: str) -> BranchInfo:
        """Create a branch by adding a ref at the head of ``from_branch``."""
        log.info("create_branch", provider=self.name, branch=branch, from_branch=from_branch)
        sha = await self._resolve_sha(owner, repo, from_branch)
        data = await self.client.post(
            f"{self._repo(owner, repo)}/git/refs",
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )
        target = data.get("object") or {}
        return BranchInfo(
            name=branch,
            commit=CommitRef(sha=target.get("sha", sha), url=target.get("url")),
            raw=data,
        )

    async def delete_branch(self, owner: str, repo: str, branch: str) -> bool:
        log.info("delete_branch", provider=self.name, branch=branch)
        await self.client.delete(f"{self._repo(owner, repo)}/git/refs/heads/{ref_path(branch)}")
        return True

    async def create_commit(
        self,
        owner: str,
        repo: str,
        message: str,
        files: dict[str, str | bytes],
        branch: str,
    ) -> CommitInfo:
        """Commit several files as one commit via the git data API.

        Steps: read the branch ref, create one blob per file, create a tree
        on top of the current tree, create the commit, move the ref.
        """
        log.info("create_commit", provider=self.name, branch=branch, files=len(files))
        repo_path = self._repo(owner, repo)

        ref = await self.client.get(f"{repo_path}/git/ref/heads/{ref_path(branch)}")
        parent_sha = ref["object"]["sha"]
        parent = await self.client.get(f"{repo_path}/git/commits/{parent_sha}")

        entries = []
        for path, content in files.items():
            blob = await self.client.post(
                f"{repo_path}/git/blobs",
                json={"content": encode_content(content), "encoding": "base64"},
            )
            entries.append({"path": path, "mode": "100644", "type": "blob", "sha": blob["sha"]})

        tree = await self.client.post(
            f"{repo_path}/git/trees",
            json={"base_tree": parent["tree"]["sha"], "tree": entries},
        )
        commit = await self.client.post(
            f"{repo_path}/git/commits",
            json={"message": message, "tree": tree["sha"], "parents": [parent_sha]},
        )
        await self.client.patch(f"{repo_path}/git/refs/heads/{ref_path(branch)}", json={"sha": commit["sha"]})
        return self.normalize_commit(commit)

    async def _merge(
        self,
        owner: str,
        repo: str,
        number: int,
        method: MergeMethod,
        title: str | None,
        message: str | None,
    ) -> None:
        payload: dict[str, Any] = {"merge_method": method.value}
        if title:
            payload["commit_title"] = title
        if message:
            payload["commit_message"] = message
        await self.client.put(f"{self._repo(owner, repo)}/pulls/{number}/merge", json=payload)

    async def get_tag(self, owner: str, repo: str, tag: str) -> TagInfo:
        """Resolve a tag ref, following it to the tag object when annotated."""
        repo_path = self._repo(owner, repo)
        ref = await self.client.get(f"{repo_path}/git/ref/tags/{ref_path(tag)}")
        target = ref.get("object") or {}
        if target.get("type") == "tag":
            return self.normalize_tag(await self.client.get(f"{repo_path}/git/tags/{target['sha']}"))
        return self.normalize_tag(ref)

    async def create_tag(
        self,
        owner: str,
        repo: str,
        tag_name: str,
        target: str,
        message: str | None = None,
    ) -> TagInfo:
        log.info("create_tag", provider=self.name, tag=tag_name, target=target)
        repo_path = self._repo(owner, repo)
        sha = await self._resolve_sha(owner, repo, target)

        if not message:
            ref = await self.client.post(f"{repo_path}/git/refs", json={"ref": f"refs/tags/{tag_name}", "sha": sha})
            return self.normalize_tag(ref)

        tag_object = await self.client.post(
            f"{repo_path}/git/tags",
            json={"tag": tag_name, "message": message, "object": sha, "type": "commit"},
        )
        await self.client.post(
            f"{repo_path}/git/refs",
            json={"ref": f"refs/tags/{tag_name}", "sha": tag_object["sha"]},
        )
        return self.normalize_tag(tag_object)

    async def delete_tag(self, owner: str, repo: str, tag: str) -> bool:
        await self.client.delete(f"{self._repo(owner, repo)}/git/refs/tags/{ref_path(tag)}")
        return True

    async def list_users(self, page: int = 1, limit: int = 30) -> list[UserInfo]:
        """List users.

        GitHub paginates /users by the last seen user id (``since``) rather
        than by page number, so earlier pages are walked to find the cursor.
        """
        since = 0
        users: list[dict[str, Any]] = []
        for _ in range(page):
            users = await self.client.get("/users", {"since": since, "per_page": limit}) or []
            if not users:
                break
            since = users[-1]["id"]
        return [self.normalize_user(user) for user in users]

    def _webhook_payload(
        self,
        url: str,
        events: list[str],
        secret: str | None,
        content_type: str,
        active: bool,
    ) -> dict[str, Any]:
        config = {"url": url, "content_type": content_type, "insecure_ssl": "0"}
        if secret:
            config["secret"] = secret
        return {"name": "web", "config": config, "events": events, "active": active}

    async def upload_project(
        self,
        owner: str,
        repo: str,
        project_path: str | Path,
        branch: str | None = None,
        message: str | None = None,
    ) -> UploadResult:
        """Upload every project file, overwriting files that already exist.

        The contents API creates and updates through the same PUT; an
        update only needs the current blob sha, which is looked up when
        the plain create is rejected.
        """
        root = Path(project_path)
        result = UploadResult()
        for relative in collect_project_files(root):
            commit_message = message or f"Add {relative}"
            try:
                content = (root / relative).read_bytes()
                try:
                    await self.create_file(owner, repo, relative, content, commit_message, branch=branch)
                except ProviderRequestError as e:
                    if e.code != ErrorCode.VALIDATION_ERROR:
                        raise
                    existing = await self.get_file(owner, repo, relative, ref=branch)
                    if isinstance(existing, list):
                        raise
                    await self.update_file(
                        owner, repo, relative, content, commit_message, existing.sha, branch=branch
                    )
            except (ProviderRequestError, OSError) as e:
                log.warning("upload_file_failed", provider=self.name, path=relative, error=str(e))
                result.errors.append(f"{relative}: {e}")
            else:
                result.uploaded.append(relative)

        log.info("upload_project_complete", provider=self.name, uploaded=len(result.uploaded), errors=len(result.errors))
        return result
