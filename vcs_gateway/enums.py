"""Enumerations shared across providers, normalizers and the git engine."""

from enum import Enum


class ProviderKind(str, Enum):
    """Backends a provider can talk to."""

    GITEA = "gitea"
    GITHUB = "github"

    def __str__(self) -> str:
        return self.value


class ErrorCode(str, Enum):
    """Closed taxonomy of normalized provider errors.

    Every HTTP or transport failure raised by either backend is mapped to
    exactly one of these codes by ``normalize_error``:

    - UNAUTHORIZED: HTTP 401
    - FORBIDDEN: HTTP 403 without rate-limit exhaustion
    - NOT_FOUND: HTTP 404
    - RATE_LIMITED: HTTP 429, or 403 carrying rate-limit headers
    - SERVER_ERROR: HTTP 5xx
    - VALIDATION_ERROR: any other HTTP 4xx
    - NETWORK_ERROR: no response at all (timeout, DNS, refused)
    - UNKNOWN_ERROR: anything that cannot be classified
    """

    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    SERVER_ERROR = "SERVER_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

    def __str__(self) -> str:
        return self.value


class IssueState(str, Enum):
    """Issue state."""

    OPEN = "open"
    CLOSED = "closed"

    def __str__(self) -> str:
        return self.value


class PullRequestState(str, Enum):
    """Pull request state.

    Backends report merged pull requests as ``closed`` plus a merge flag;
    normalization folds that into ``MERGED``.
    """

    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"

    def __str__(self) -> str:
        return self.value


class MergeMethod(str, Enum):
    """Strategies accepted by merge_pull_request."""

    MERGE = "merge"
    REBASE = "rebase"
    SQUASH = "squash"

    def __str__(self) -> str:
        return self.value


class FileType(str, Enum):
    FILE = "file"
    DIR = "dir"

    def __str__(self) -> str:
        return self.value


class ResetMode(str, Enum):
    """Modes for ``git reset``."""

    SOFT = "soft"
    MIXED = "mixed"
    HARD = "hard"

    def __str__(self) -> str:
        return self.value


class GitErrorType(str, Enum):
    """Categories assigned to git stderr by ``analyze_git_error``."""

    LOCK_CONTENTION = "LOCK_CONTENTION"
    NOT_A_REPOSITORY = "NOT_A_REPOSITORY"
    MERGE_CONFLICT = "MERGE_CONFLICT"
    DIVERGENT_BRANCHES = "DIVERGENT_BRANCHES"
    OUT_OF_SYNC = "OUT_OF_SYNC"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    REPOSITORY_NOT_FOUND = "REPOSITORY_NOT_FOUND"
    DIRTY_WORKING_TREE = "DIRTY_WORKING_TREE"
    BRANCH_NOT_FOUND = "BRANCH_NOT_FOUND"
    NETWORK_ERROR = "NETWORK_ERROR"
    DISK_SPACE_ERROR = "DISK_SPACE_ERROR"
    UNKNOWN = "UNKNOWN"

    def __str__(self) -> str:
        return self.value
