"""Canonical entities produced by provider normalization.

Every entity returned by a provider is one of the frozen dataclasses
defined here. They are backend-agnostic projections of the GitHub and
Gitea REST payloads: field naming, nesting and enum spelling differences
are absorbed by each provider's ``normalize_*`` hooks.

Each entity also keeps the untouched backend payload in ``raw``. That
field is excluded from equality and ``repr``; callers needing a backend
specific detail read it from there, never from an ad-hoc attribute.

Example:
    >>> repo = provider.normalize_repository(payload)
    >>> repo.full_name
    'octocat/hello-world'
    >>> repo.raw is payload
    True
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from vcs_gateway.enums import ErrorCode, FileType, IssueState, PullRequestState


@dataclass(frozen=True)
class RepositoryOwner:
    """Owner of a repository (user or organization)."""

    login: str
    type: str = "User"
    id: int | None = None


@dataclass(frozen=True)
class CommitRef:
    """Pointer to a commit, as embedded in branches and tags."""

    sha: str
    """Full commit hash. Never abbreviated."""

    url: str | None = None


@dataclass(frozen=True)
class GitActor:
    """Author or committer of a commit."""

    name: str
    email: str | None = None
    date: datetime | None = None


@dataclass(frozen=True)
class UserRef:
    """Lightweight user reference embedded in issues and pull requests."""

    login: str
    id: int | None = None


@dataclass(frozen=True)
class PullRequestRef:
    """Head or base side of a pull request."""

    ref: str
    sha: str | None = None
    label: str | None = None


@dataclass(frozen=True)
class ReleaseAsset:
    id: int
    name: str
    size: int = 0
    download_url: str | None = None


@dataclass(frozen=True)
class WebhookConfig:
    """Delivery configuration of a webhook.

    The shared secret is deliberately absent: it is write-only and is
    never echoed back once the hook exists.
    """

    url: str
    content_type: str = "json"


@dataclass(frozen=True)
class RateLimitInfo:
    """Rate-limit metadata extracted from response headers."""

    limit: int | None = None
    remaining: int | None = None
    reset_at: datetime | None = None
    retry_after: float | None = None


@dataclass(frozen=True)
class RepositoryInfo:
    """A repository.

    ``full_name`` is always ``owner/name``, built from the normalized owner
    login and repository name rather than copied from the payload.
    """

    id: int
    name: str
    full_name: str
    owner: RepositoryOwner
    description: str | None = None
    private: bool = False
    fork: bool = False
    default_branch: str = "main"
    clone_url: str | None = None
    ssh_url: str | None = None
    html_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    raw: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class BranchInfo:
    name: str
    commit: CommitRef
    protected: bool = False
    raw: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class FileInfo:
    """A file or directory entry.

    ``content`` and ``encoding`` are populated only when a single file was
    fetched. Directory listings leave both as ``None``.
    """

    path: str
    name: str
    sha: str
    size: int
    type: FileType
    content: str | None = None
    encoding: str | None = None
    download_url: str | None = None
    html_url: str | None = None
    raw: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class CommitInfo:
    sha: str
    message: str
    author: GitActor
    committer: GitActor
    url: str | None = None
    html_url: str | None = None
    parents: tuple[str, ...] = ()
    raw: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class IssueInfo:
    """An issue.

    ``number`` is scoped to its repository; ``id`` is the backend's global
    identifier.
    """

    id: int
    number: int
    title: str
    state: IssueState
    user: UserRef
    body: str | None = None
    labels: tuple[str, ...] = ()
    assignees: tuple[str, ...] = ()
    html_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    closed_at: datetime | None = None
    raw: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class PullRequestInfo:
    """A pull request.

    A pull request that was closed by merging has ``state`` MERGED, never
    CLOSED.
    """

    id: int
    number: int
    title: str
    state: PullRequestState
    user: UserRef
    head: PullRequestRef
    base: PullRequestRef
    body: str | None = None
    merged: bool = False
    mergeable: bool | None = None
    html_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    closed_at: datetime | None = None
    merged_at: datetime | None = None
    raw: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class ReleaseInfo:
    id: int
    tag_name: str
    name: str | None = None
    body: str | None = None
    draft: bool = False
    prerelease: bool = False
    target_commitish: str | None = None
    html_url: str | None = None
    tarball_url: str | None = None
    zipball_url: str | None = None
    assets: tuple[ReleaseAsset, ...] = ()
    created_at: datetime | None = None
    published_at: datetime | None = None
    raw: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class TagInfo:
    """A tag. Names are unique within one repository."""

    name: str
    commit: CommitRef
    message: str | None = None
    tarball_url: str | None = None
    zipball_url: str | None = None
    raw: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class UserInfo:
    """A user account. ``login`` is the stable identity key."""

    id: int
    login: str
    name: str | None = None
    email: str | None = None
    avatar_url: str | None = None
    html_url: str | None = None
    type: str = "User"
    raw: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class OrganizationInfo:
    id: int
    login: str
    name: str | None = None
    description: str | None = None
    avatar_url: str | None = None
    raw: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class WebhookInfo:
    id: int
    type: str
    events: tuple[str, ...]
    config: WebhookConfig
    active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    raw: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class StandardError:
    """Normalized error record.

    Produced by ``normalize_error`` for every HTTP or transport failure,
    regardless of which backend raised it.
    """

    code: ErrorCode
    message: str
    provider: str
    retryable: bool
    status_code: int | None = None
    rate_limit: RateLimitInfo | None = None
    original_error: BaseException | None = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary (without the original error)."""
        result: dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "provider": self.provider,
            "statusCode": self.status_code,
            "retryable": self.retryable,
        }
        if self.rate_limit is not None:
            result["rateLimit"] = {
                "limit": self.rate_limit.limit,
                "remaining": self.rate_limit.remaining,
                "resetAt": self.rate_limit.reset_at.isoformat() if self.rate_limit.reset_at else None,
                "retryAfter": self.rate_limit.retry_after,
            }
        return result


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one local git invocation.

    A non-zero exit is a normal, representable outcome; ``success`` is true
    exactly when the process exited with status 0.
    """

    exit_code: int
    output: str
    error: str
    command: tuple[str, ...] = ()
    """Argument vector that was executed, without the git binary."""

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "exitCode": self.exit_code,
            "output": self.output,
            "error": self.error,
        }


@dataclass
class UploadResult:
    """Summary of an upload_project run."""

    uploaded: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors
