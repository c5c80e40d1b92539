"""Classification of git failures.

``analyze_git_error`` maps the stderr of a failed git command to a
category with a probable cause, a suggested fix and follow-up commands.
Rules are checked in order and the first match wins, so more specific
messages (lock files, missing repository) are listed before generic ones.

Example:
    >>> analysis = analyze_git_error("fatal: not a git repository (or any of the parent directories): .git")
    >>> analysis.error_type
    <GitErrorType.NOT_A_REPOSITORY: 'NOT_A_REPOSITORY'>
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from vcs_gateway.enums import GitErrorType


@dataclass(frozen=True)
class GitErrorAnalysis:
    """Structured explanation of a git failure."""

    error_type: GitErrorType
    cause: str
    solution: str
    suggested_commands: tuple[str, ...] = ()
    auto_fixable: bool = False
    requires_user_action: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "errorType": self.error_type.value,
            "cause": self.cause,
            "solution": self.solution,
            "suggestedCommands": list(self.suggested_commands),
            "autoFixable": self.auto_fixable,
            "requiresUserAction": self.requires_user_action,
        }


@dataclass(frozen=True)
class _Rule:
    pattern: re.Pattern[str]
    analysis: GitErrorAnalysis


def _rule(pattern: str, analysis: GitErrorAnalysis) -> _Rule:
    return _Rule(re.compile(pattern, re.IGNORECASE), analysis)


RULES: tuple[_Rule, ...] = (
    _rule(
        r"\.lock'?: file exists|another git process|unable to create '.*\.lock'",
        GitErrorAnalysis(
            error_type=GitErrorType.LOCK_CONTENTION,
            cause="Another git process holds a lock on this repository",
            solution="Wait for the other operation to finish, then remove the stale lock file if none is running",
            suggested_commands=("git status", "rm -f .git/index.lock"),
        ),
    ),
    _rule(
        r"not a git repository",
        GitErrorAnalysis(
            error_type=GitErrorType.NOT_A_REPOSITORY,
            cause="The path is not inside a git working copy",
            solution="Run the command in a repository, or initialize or clone one first",
            suggested_commands=("git init", "git clone <url>"),
        ),
    ),
    _rule(
        r"conflict",
        GitErrorAnalysis(
            error_type=GitErrorType.MERGE_CONFLICT,
            cause="Changes from both sides touch the same lines",
            solution="Resolve the conflicted files, stage them and commit, or abort the operation",
            suggested_commands=("git status", "git diff", "git add <resolved files>", "git commit", "git merge --abort"),
        ),
    ),
    _rule(
        r"divergent|non-fast-forward",
        GitErrorAnalysis(
            error_type=GitErrorType.DIVERGENT_BRANCHES,
            cause="Local and remote branches have diverged",
            solution="Integrate the remote history with a rebase or a merge",
            suggested_commands=("git pull --rebase", "git pull --no-rebase"),
            auto_fixable=True,
            requires_user_action=False,
        ),
    ),
    _rule(
        r"fetch first|updates were rejected",
        GitErrorAnalysis(
            error_type=GitErrorType.OUT_OF_SYNC,
            cause="The remote has commits the local branch does not",
            solution="Pull before pushing",
            suggested_commands=("git pull", "git push"),
            auto_fixable=True,
            requires_user_action=False,
        ),
    ),
    _rule(
        r"authentication failed|failed to authenticate|unauthorized|could not read username|terminal prompts disabled",
        GitErrorAnalysis(
            error_type=GitErrorType.AUTHENTICATION_ERROR,
            cause="Credentials are missing, invalid or expired",
            solution="Configure a valid token or SSH key for the remote",
            suggested_commands=("git remote -v", "git remote set-url origin <url-with-credentials>"),
        ),
    ),
    _rule(
        r"permission denied|forbidden|access denied",
        GitErrorAnalysis(
            error_type=GitErrorType.PERMISSION_DENIED,
            cause="The account lacks permission for this operation",
            solution="Check repository permissions for the configured user",
            suggested_commands=("git config --list", "git remote -v"),
        ),
    ),
    _rule(
        r"pathspec .* did not match|invalid reference|not a valid (?:object name|ref)|"
        r"unknown revision|branch .* (?:does not exist|not found)",
        GitErrorAnalysis(
            error_type=GitErrorType.BRANCH_NOT_FOUND,
            cause="The branch or revision does not exist",
            solution="List branches and check out an existing one, or create it",
            suggested_commands=("git branch --all", "git checkout -b <branch>"),
            auto_fixable=True,
            requires_user_action=False,
        ),
    ),
    _rule(
        r"repository .*not found|does not appear to be a git repository|not found",
        GitErrorAnalysis(
            error_type=GitErrorType.REPOSITORY_NOT_FOUND,
            cause="The remote repository does not exist or the URL is wrong",
            solution="Verify the remote URL and that the repository exists",
            suggested_commands=("git remote -v", "git remote set-url origin <url>"),
        ),
    ),
    _rule(
        r"working tree|uncommitted changes|local changes .* would be overwritten|please commit or stash",
        GitErrorAnalysis(
            error_type=GitErrorType.DIRTY_WORKING_TREE,
            cause="The working tree has uncommitted changes",
            solution="Commit or stash the changes before retrying",
            suggested_commands=("git status", "git stash", "git stash pop"),
            auto_fixable=True,
            requires_user_action=False,
        ),
    ),
    _rule(
        r"could not resolve host|connection (?:refused|timed out|reset)|network|timed out",
        GitErrorAnalysis(
            error_type=GitErrorType.NETWORK_ERROR,
            cause="The remote host could not be reached",
            solution="Check connectivity and retry",
            suggested_commands=("git remote -v", "git fetch"),
            auto_fixable=True,
            requires_user_action=False,
        ),
    ),
    _rule(
        r"no space left on device|disk quota exceeded",
        GitErrorAnalysis(
            error_type=GitErrorType.DISK_SPACE_ERROR,
            cause="The disk is full",
            solution="Free disk space, then retry",
            suggested_commands=("df -h", "git gc --prune=now"),
        ),
    ),
)

UNKNOWN_ANALYSIS = GitErrorAnalysis(
    error_type=GitErrorType.UNKNOWN,
    cause="Unrecognized git error",
    solution="Inspect the full error output and repository state",
    suggested_commands=("git status", "git log --oneline -5", "git remote -v"),
)


def analyze_git_error(stderr: str) -> GitErrorAnalysis:
    """Classify git error output; unrecognized text maps to UNKNOWN."""
    for rule in RULES:
        if rule.pattern.search(stderr):
            return rule.analysis
    return UNKNOWN_ANALYSIS
