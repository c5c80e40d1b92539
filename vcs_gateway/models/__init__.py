"""Canonical data model."""

from vcs_gateway.models.domain import (
    BranchInfo,
    CommandResult,
    CommitInfo,
    CommitRef,
    FileInfo,
    GitActor,
    IssueInfo,
    OrganizationInfo,
    PullRequestInfo,
    PullRequestRef,
    RateLimitInfo,
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

__all__ = [
    "BranchInfo",
    "CommandResult",
    "CommitInfo",
    "CommitRef",
    "FileInfo",
    "GitActor",
    "IssueInfo",
    "OrganizationInfo",
    "PullRequestInfo",
    "PullRequestRef",
    "RateLimitInfo",
    "ReleaseAsset",
    "ReleaseInfo",
    "RepositoryInfo",
    "RepositoryOwner",
    "StandardError",
    "TagInfo",
    "UploadResult",
    "UserInfo",
    "UserRef",
    "WebhookConfig",
    "WebhookInfo",
]
