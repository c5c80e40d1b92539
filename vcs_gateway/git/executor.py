"""Local git command execution.

GitExecutor runs an intent against a working copy in four steps:

1. Build - the intent's argument vector (no shell involved)
2. Spawn - ``git`` with the working directory pinned to the given path
3. Collect - stdout and stderr until the process exits
4. Resolve - a CommandResult; a non-zero exit is a result, not an exception

Only failures to start git at all (missing binary, no permission, missing
working copy) are raised, as GitExecutionError subclasses.

Concurrent intents against the same working copy are not serialized; git's
own lock files are the only protection.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import git
import structlog
from git.exc import InvalidGitRepositoryError, NoSuchPathError

from vcs_gateway.exceptions import GitSpawnError, WorkingCopyNotFoundError
from vcs_gateway.git.intents import GitIntent, build_intent
from vcs_gateway.models.domain import CommandResult
from vcs_gateway.utils.async_subprocess import run_command

log = structlog.get_logger(__name__)

TIMEOUT_EXIT_CODE = -1


class GitExecutor:
    """Runs git intents against local working copies.

    Args:
        git_binary: Executable to run
        timeout: Seconds after which a running command is killed. None (the
            default) waits indefinitely.

    Example:
        >>> executor = GitExecutor()
        >>> result = await executor.run("reset", {"mode": "hard"}, "/path/to/repo")
        >>> if not result.success:
        ...     print(result.error)
    """

    def __init__(self, git_binary: str = "git", timeout: float | None = None) -> None:
        self.git_binary = git_binary
        self.timeout = timeout

    def _environment(self) -> dict[str, str]:
        env = dict(os.environ)
        # never block on a credential prompt
        env["GIT_TERMINAL_PROMPT"] = "0"
        return env

    async def run(
        self,
        intent: GitIntent | str,
        options: Mapping[str, Any] | None = None,
        path: str | Path = ".",
    ) -> CommandResult:
        """Run one git intent.

        Args:
            intent: A GitIntent, or an intent name resolved with ``options``
            options: Intent options when ``intent`` is a name
            path: Working copy to run in; must exist

        Returns:
            CommandResult with stripped output and error text

        Raises:
            WorkingCopyNotFoundError: If ``path`` does not exist
            GitSpawnError: If the git binary cannot be executed
            InvalidIntentError: If the intent cannot be encoded
        """
        if isinstance(intent, str):
            intent = build_intent(intent, options)
        args = intent.to_args()

        working_copy = Path(path)
        if not working_copy.is_dir():
            raise WorkingCopyNotFoundError(str(working_copy))

        command = (self.git_binary, *args)
        log.debug("git_command_started", command=list(command), cwd=str(working_copy))

        try:
            stdout, stderr, exit_code = await run_command(
                *command,
                cwd=working_copy,
                check=False,
                timeout=self.timeout,
                env=self._environment(),
            )
        except TimeoutError:
            log.warning("git_command_timeout", command=list(command), timeout=self.timeout)
            return CommandResult(
                exit_code=TIMEOUT_EXIT_CODE,
                output="",
                error=f"git command timed out after {self.timeout}s",
                command=tuple(args),
            )
        except FileNotFoundError as e:
            raise GitSpawnError(f"git executable not found: {self.git_binary}", binary=self.git_binary) from e
        except PermissionError as e:
            raise GitSpawnError(f"git executable is not runnable: {self.git_binary}", binary=self.git_binary) from e

        result = CommandResult(exit_code=exit_code, output=stdout.strip(), error=stderr.strip(), command=tuple(args))
        if result.success:
            log.debug("git_command_completed", command=list(command))
        else:
            log.info("git_command_failed", command=list(command), exit_code=exit_code, error=result.error)
        return result

    # -------------------------------------------------------------------------
    # Working-copy inspection
    # -------------------------------------------------------------------------

    @staticmethod
    def _open_repository(path: str | Path) -> git.Repo:
        try:
            return git.Repo(Path(path), search_parent_directories=True)
        except NoSuchPathError as e:
            raise WorkingCopyNotFoundError(str(path)) from e

    async def is_git_repository(self, path: str | Path) -> bool:
        try:
            repo = await asyncio.to_thread(self._open_repository, path)
        except (InvalidGitRepositoryError, WorkingCopyNotFoundError):
            return False
        repo.close()
        return True

    async def current_branch(self, path: str | Path) -> str | None:
        """Name of the checked-out branch; None when detached or not a repository."""
        result = await self.run("branch", {"action": "current"}, path)
        if not result.success or not result.output:
            return None
        return result.output

    async def repository_info(self, path: str | Path) -> dict[str, Any] | None:
        """Summarize a working copy: branch, head sha, remotes, dirty flag.

        Returns None when ``path`` is not inside a git working copy. ``head``
        is None in a repository without commits.

        Raises:
            WorkingCopyNotFoundError: If ``path`` does not exist
        """
        try:
            return await asyncio.to_thread(self._summarize, path)
        except InvalidGitRepositoryError:
            return None

    def _summarize(self, path: str | Path) -> dict[str, Any]:
        repo = self._open_repository(path)
        try:
            branch = None if repo.head.is_detached else repo.active_branch.name
            return {
                "root": repo.working_tree_dir,
                "branch": branch,
                "head": repo.head.commit.hexsha if repo.head.is_valid() else None,
                "remotes": {remote.name: remote.url for remote in repo.remotes},
                "dirty": repo.is_dirty(untracked_files=True),
            }
        finally:
            repo.close()
