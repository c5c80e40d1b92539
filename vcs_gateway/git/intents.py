"""Typed git intents and their argument-vector encoding.

An intent is a structured description of one git action (``reset`` with
``mode="hard"``, ``stash`` with ``action="pop"``, ...). ``to_args`` turns it
into the argument list passed to git, never into a shell string: values
are separate list elements, ref-like values may not start with ``-`` and
paths follow ``--`` wherever git accepts it.

Example:
    >>> ResetIntent(mode="hard", target="HEAD~1").to_args()
    ['reset', '--hard', 'HEAD~1']
    >>> build_intent("stash", {"action": "push", "message": "wip; rm -rf /"}).to_args()
    ['stash', 'push', '-m', 'wip; rm -rf /']
"""

from __future__ import annotations

import re
import shlex
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any, ClassVar

from vcs_gateway.enums import ResetMode
from vcs_gateway.exceptions import InvalidIntentError

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")
_SEQUENCE_FIELDS = frozenset({"paths", "commits", "refs"})
_INTEGER_FIELDS = frozenset({"depth", "mainline", "max_count"})


def _ref(value: str | None, label: str) -> str:
    """Validate a ref-like value (branch, remote, tag, commit, key)."""
    if value is None or not str(value).strip():
        raise InvalidIntentError(f"{label} is required")
    value = str(value)
    if value.startswith("-"):
        raise InvalidIntentError(f"{label} may not start with '-': {value!r}")
    return value


def _integer(value: Any, label: str) -> int:
    """Coerce a numeric option, rejecting anything that is not a whole number."""
    if isinstance(value, bool):
        raise InvalidIntentError(f"{label} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise InvalidIntentError(f"{label} must be an integer, got {value!r}") from e


def _optional_ref(value: str | None, label: str) -> list[str]:
    return [] if value is None else [_ref(value, label)]


def _positional(values: tuple[str, ...], label: str) -> list[str]:
    return [_ref(value, label) for value in values]


def _flag(enabled: bool, flag: str) -> list[str]:
    return [flag] if enabled else []


def _paths(paths: tuple[str, ...]) -> list[str]:
    return ["--", *paths] if paths else []


@dataclass(frozen=True)
class GitIntent(ABC):
    """Base class of every git intent."""

    name: ClassVar[str]
    actions: ClassVar[frozenset[str]] = frozenset()

    @abstractmethod
    def to_args(self) -> list[str]:
        """Argument vector, without the leading ``git``."""

    def _check_action(self, action: str) -> str:
        if action not in self.actions:
            allowed = ", ".join(sorted(self.actions))
            raise InvalidIntentError(f"Unsupported {self.name} action {action!r}; expected one of: {allowed}")
        return action


# -----------------------------------------------------------------------------
# Repository setup
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class InitIntent(GitIntent):
    name: ClassVar[str] = "init"

    bare: bool = False
    initial_branch: str | None = None

    def to_args(self) -> list[str]:
        args = ["init", *_flag(self.bare, "--bare")]
        if self.initial_branch:
            args.append(f"--initial-branch={_ref(self.initial_branch, 'initial branch')}")
        return args


@dataclass(frozen=True)
class CloneIntent(GitIntent):
    name: ClassVar[str] = "clone"

    url: str = ""
    directory: str | None = None
    branch: str | None = None
    depth: int | None = None
    bare: bool = False

    def to_args(self) -> list[str]:
        args = ["clone", *_flag(self.bare, "--bare")]
        if self.branch:
            args += ["--branch", _ref(self.branch, "branch")]
        if self.depth is not None:
            args.append(f"--depth={_integer(self.depth, 'depth')}")
        args += ["--", _ref(self.url, "url")]
        if self.directory:
            args.append(self.directory)
        return args


# -----------------------------------------------------------------------------
# Staging and committing
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class AddIntent(GitIntent):
    name: ClassVar[str] = "add"

    paths: tuple[str, ...] = (".",)
    all: bool = False

    def to_args(self) -> list[str]:
        if self.all:
            return ["add", "--all"]
        if not self.paths:
            raise InvalidIntentError("add requires at least one path")
        return ["add", *_paths(self.paths)]


@dataclass(frozen=True)
class CommitIntent(GitIntent):
    name: ClassVar[str] = "commit"

    message: str | None = None
    all: bool = False
    amend: bool = False
    allow_empty: bool = False
    author: str | None = None

    def to_args(self) -> list[str]:
        args = ["commit", *_flag(self.all, "--all"), *_flag(self.amend, "--amend")]
        args += _flag(self.allow_empty, "--allow-empty")
        if self.author:
            args.append(f"--author={self.author}")
        if self.message is not None:
            args += ["-m", self.message]
        elif self.amend:
            args.append("--no-edit")
        else:
            raise InvalidIntentError("commit requires a message")
        return args


@dataclass(frozen=True)
class ResetIntent(GitIntent):
    name: ClassVar[str] = "reset"

    mode: ResetMode | str = ResetMode.MIXED
    target: str = "HEAD"
    paths: tuple[str, ...] = ()

    def to_args(self) -> list[str]:
        try:
            mode = ResetMode(self.mode)
        except ValueError as e:
            raise InvalidIntentError(f"Unsupported reset mode: {self.mode!r}") from e

        target = _ref(self.target, "reset target")
        if self.paths:
            if mode != ResetMode.MIXED:
                raise InvalidIntentError(f"reset --{mode.value} cannot be combined with paths")
            return ["reset", target, *_paths(self.paths)]
        return ["reset", f"--{mode.value}", target]


@dataclass(frozen=True)
class RevertIntent(GitIntent):
    name: ClassVar[str] = "revert"
    actions: ClassVar[frozenset[str]] = frozenset({"revert", "abort", "continue", "skip"})

    commits: tuple[str, ...] = ()
    action: str = "revert"
    no_commit: bool = False
    mainline: int | None = None

    def to_args(self) -> list[str]:
        if self._check_action(self.action) != "revert":
            return ["revert", f"--{self.action}"]
        if not self.commits:
            raise InvalidIntentError("revert requires at least one commit")
        args = ["revert", "--no-edit", *_flag(self.no_commit, "--no-commit")]
        if self.mainline is not None:
            args += ["-m", str(_integer(self.mainline, "mainline"))]
        return args + _positional(self.commits, "commit")


@dataclass(frozen=True)
class CherryPickIntent(GitIntent):
    name: ClassVar[str] = "cherry-pick"
    actions: ClassVar[frozenset[str]] = frozenset({"pick", "abort", "continue", "skip", "quit"})

    commits: tuple[str, ...] = ()
    action: str = "pick"
    no_commit: bool = False
    record_origin: bool = False

    def to_args(self) -> list[str]:
        if self._check_action(self.action) != "pick":
            return ["cherry-pick", f"--{self.action}"]
        if not self.commits:
            raise InvalidIntentError("cherry-pick requires at least one commit or range")
        args = ["cherry-pick", *_flag(self.no_commit, "--no-commit"), *_flag(self.record_origin, "-x")]
        return args + _positional(self.commits, "commit")


@dataclass(frozen=True)
class StashIntent(GitIntent):
    name: ClassVar[str] = "stash"
    actions: ClassVar[frozenset[str]] = frozenset({"push", "pop", "apply", "list", "show", "drop", "clear"})

    action: str = "push"
    message: str | None = None
    include_untracked: bool = False
    keep_index: bool = False
    index: str | int | None = None
    patch: bool = False

    def _stash_ref(self) -> list[str]:
        if self.index is None:
            return []
        index = str(self.index)
        if index.isdigit():
            return [f"stash@{{{index}}}"]
        return [_ref(index, "stash reference")]

    def to_args(self) -> list[str]:
        action = self._check_action(self.action)
        if action == "push":
            args = ["stash", "push"]
            if self.message:
                args += ["-m", self.message]
            return args + _flag(self.include_untracked, "--include-untracked") + _flag(self.keep_index, "--keep-index")
        if action == "show":
            return ["stash", "show", *_flag(self.patch, "--patch"), *self._stash_ref()]
        if action in ("list", "clear"):
            return ["stash", action]
        return ["stash", action, *self._stash_ref()]


# -----------------------------------------------------------------------------
# Branching and history
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class BranchIntent(GitIntent):
    name: ClassVar[str] = "branch"
    actions: ClassVar[frozenset[str]] = frozenset({"list", "create", "delete", "rename", "current"})

    action: str = "list"
    branch: str | None = None
    start_point: str | None = None
    new_name: str | None = None
    force: bool = False
    all: bool = False

    def to_args(self) -> list[str]:
        action = self._check_action(self.action)
        if action == "list":
            return ["branch", "--list", *_flag(self.all, "--all")]
        if action == "current":
            return ["branch", "--show-current"]
        branch = _ref(self.branch, "branch")
        if action == "create":
            return ["branch", *_flag(self.force, "--force"), branch, *_optional_ref(self.start_point, "start point")]
        if action == "delete":
            return ["branch", "-D" if self.force else "-d", branch]
        return ["branch", "-M" if self.force else "-m", branch, _ref(self.new_name, "new branch name")]


@dataclass(frozen=True)
class CheckoutIntent(GitIntent):
    name: ClassVar[str] = "checkout"

    target: str = ""
    create: bool = False
    start_point: str | None = None
    paths: tuple[str, ...] = ()

    def to_args(self) -> list[str]:
        target = _ref(self.target, "checkout target")
        if self.paths:
            return ["checkout", target, *_paths(self.paths)]
        if self.create:
            return ["checkout", "-b", target, *_optional_ref(self.start_point, "start point")]
        # trailing "--" keeps a missing branch from being read as a path
        return ["checkout", target, "--"]


@dataclass(frozen=True)
class MergeIntent(GitIntent):
    name: ClassVar[str] = "merge"
    actions: ClassVar[frozenset[str]] = frozenset({"merge", "abort", "continue"})

    branch: str | None = None
    action: str = "merge"
    no_ff: bool = False
    ff_only: bool = False
    squash: bool = False
    message: str | None = None

    def to_args(self) -> list[str]:
        if self._check_action(self.action) != "merge":
            return ["merge", f"--{self.action}"]
        args = ["merge", *_flag(self.no_ff, "--no-ff"), *_flag(self.ff_only, "--ff-only"), *_flag(self.squash, "--squash")]
        args += ["-m", self.message] if self.message else ["--no-edit"]
        return args + [_ref(self.branch, "branch")]


@dataclass(frozen=True)
class RebaseIntent(GitIntent):
    name: ClassVar[str] = "rebase"
    actions: ClassVar[frozenset[str]] = frozenset({"rebase", "abort", "continue", "skip"})

    upstream: str | None = None
    action: str = "rebase"
    onto: str | None = None

    def to_args(self) -> list[str]:
        if self._check_action(self.action) != "rebase":
            return ["rebase", f"--{self.action}"]
        args = ["rebase"]
        if self.onto:
            args += ["--onto", _ref(self.onto, "onto")]
        return args + [_ref(self.upstream, "upstream")]


@dataclass(frozen=True)
class TagIntent(GitIntent):
    name: ClassVar[str] = "tag"
    actions: ClassVar[frozenset[str]] = frozenset({"list", "create", "delete"})

    action: str = "list"
    tag: str | None = None
    target: str | None = None
    message: str | None = None
    force: bool = False
    pattern: str | None = None

    def to_args(self) -> list[str]:
        action = self._check_action(self.action)
        if action == "list":
            return ["tag", "--list", *_optional_ref(self.pattern, "pattern")]
        tag = _ref(self.tag, "tag")
        if action == "delete":
            return ["tag", "-d", tag]
        args = ["tag", *_flag(self.force, "--force")]
        if self.message:
            args += ["-a", "-m", self.message]
        return args + [tag, *_optional_ref(self.target, "target")]


@dataclass(frozen=True)
class LogIntent(GitIntent):
    name: ClassVar[str] = "log"

    ref: str | None = None
    max_count: int | None = None
    oneline: bool = False
    author: str | None = None
    since: str | None = None
    paths: tuple[str, ...] = ()

    def to_args(self) -> list[str]:
        args = ["log", *_flag(self.oneline, "--oneline")]
        if self.max_count is not None:
            args.append(f"--max-count={_integer(self.max_count, 'max count')}")
        if self.author:
            args.append(f"--author={self.author}")
        if self.since:
            args.append(f"--since={self.since}")
        return args + _optional_ref(self.ref, "ref") + _paths(self.paths)


@dataclass(frozen=True)
class StatusIntent(GitIntent):
    name: ClassVar[str] = "status"

    porcelain: bool = False
    short: bool = False
    branch: bool = False

    def to_args(self) -> list[str]:
        return ["status", *_flag(self.porcelain, "--porcelain"), *_flag(self.short, "--short"), *_flag(self.branch, "--branch")]


@dataclass(frozen=True)
class DiffIntent(GitIntent):
    name: ClassVar[str] = "diff"

    base: str | None = None
    head: str | None = None
    staged: bool = False
    name_only: bool = False
    stat: bool = False
    paths: tuple[str, ...] = ()

    def to_args(self) -> list[str]:
        args = ["diff", *_flag(self.staged, "--staged"), *_flag(self.name_only, "--name-only"), *_flag(self.stat, "--stat")]
        args += _optional_ref(self.base, "base") + _optional_ref(self.head, "head")
        return args + _paths(self.paths)


# -----------------------------------------------------------------------------
# Remotes and synchronization
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class PushIntent(GitIntent):
    name: ClassVar[str] = "push"

    remote: str = "origin"
    branch: str | None = None
    force: bool = False
    set_upstream: bool = False
    tags: bool = False
    delete: bool = False

    def to_args(self) -> list[str]:
        args = ["push", *_flag(self.force, "--force-with-lease"), *_flag(self.set_upstream, "--set-upstream")]
        args += _flag(self.tags, "--tags") + _flag(self.delete, "--delete")
        if self.delete and not self.branch:
            raise InvalidIntentError("push --delete requires a branch")
        return args + [_ref(self.remote, "remote"), *_optional_ref(self.branch, "branch")]


@dataclass(frozen=True)
class PullIntent(GitIntent):
    name: ClassVar[str] = "pull"

    remote: str | None = None
    branch: str | None = None
    rebase: bool = False
    ff_only: bool = False

    def to_args(self) -> list[str]:
        if self.branch and not self.remote:
            raise InvalidIntentError("pull with a branch requires a remote")
        args = ["pull", *_flag(self.rebase, "--rebase"), *_flag(self.ff_only, "--ff-only")]
        return args + _optional_ref(self.remote, "remote") + _optional_ref(self.branch, "branch")


@dataclass(frozen=True)
class FetchIntent(GitIntent):
    name: ClassVar[str] = "fetch"

    remote: str | None = None
    all: bool = False
    prune: bool = False
    tags: bool = False

    def to_args(self) -> list[str]:
        args = ["fetch", *_flag(self.all, "--all"), *_flag(self.prune, "--prune"), *_flag(self.tags, "--tags")]
        if self.all:
            return args
        return args + _optional_ref(self.remote, "remote")


@dataclass(frozen=True)
class RemoteIntent(GitIntent):
    name: ClassVar[str] = "remote"
    actions: ClassVar[frozenset[str]] = frozenset({"list", "add", "remove", "rename", "set-url", "get-url", "prune"})

    action: str = "list"
    remote: str | None = None
    url: str | None = None
    new_name: str | None = None

    def to_args(self) -> list[str]:
        action = self._check_action(self.action)
        if action == "list":
            return ["remote", "-v"]
        remote = _ref(self.remote, "remote")
        if action in ("add", "set-url"):
            return ["remote", action, remote, _ref(self.url, "url")]
        if action == "rename":
            return ["remote", "rename", remote, _ref(self.new_name, "new remote name")]
        return ["remote", action, remote]


@dataclass(frozen=True)
class ConfigIntent(GitIntent):
    name: ClassVar[str] = "config"
    actions: ClassVar[frozenset[str]] = frozenset({"get", "set", "unset", "list"})
    scopes: ClassVar[frozenset[str]] = frozenset({"local", "global", "system"})

    action: str = "get"
    key: str | None = None
    value: str | None = None
    scope: str | None = None

    def to_args(self) -> list[str]:
        action = self._check_action(self.action)
        args = ["config"]
        if self.scope is not None:
            if self.scope not in self.scopes:
                raise InvalidIntentError(f"Unsupported config scope: {self.scope!r}")
            args.append(f"--{self.scope}")
        if action == "list":
            return args + ["--list"]
        key = _ref(self.key, "config key")
        if action == "get":
            return args + ["--get", key]
        if action == "unset":
            return args + ["--unset", key]
        if self.value is None:
            raise InvalidIntentError("config set requires a value")
        return args + [key, str(self.value)]


@dataclass(frozen=True)
class SubmoduleIntent(GitIntent):
    name: ClassVar[str] = "submodule"
    actions: ClassVar[frozenset[str]] = frozenset({"status", "add", "init", "update", "sync", "deinit"})

    action: str = "status"
    url: str | None = None
    path: str | None = None
    recursive: bool = False
    init: bool = False
    force: bool = False

    def to_args(self) -> list[str]:
        action = self._check_action(self.action)
        if action == "add":
            return ["submodule", "add", "--", _ref(self.url, "url"), *([self.path] if self.path else [])]
        if action == "update":
            args = ["submodule", "update", *_flag(self.init, "--init"), *_flag(self.recursive, "--recursive")]
        elif action == "deinit":
            if not self.path:
                raise InvalidIntentError("submodule deinit requires a path")
            args = ["submodule", "deinit", *_flag(self.force, "--force")]
        else:
            args = ["submodule", action, *_flag(self.recursive and action != "init", "--recursive")]
        return args + _paths((self.path,) if self.path else ())


@dataclass(frozen=True)
class WorktreeIntent(GitIntent):
    name: ClassVar[str] = "worktree"
    actions: ClassVar[frozenset[str]] = frozenset({"list", "add", "remove", "prune"})

    action: str = "list"
    path: str | None = None
    branch: str | None = None
    create_branch: bool = False
    force: bool = False

    def to_args(self) -> list[str]:
        action = self._check_action(self.action)
        if action in ("list", "prune"):
            return ["worktree", action]
        path = _ref(self.path, "worktree path")
        if action == "remove":
            return ["worktree", "remove", *_flag(self.force, "--force"), path]
        if self.create_branch:
            return ["worktree", "add", "-b", _ref(self.branch, "branch"), path]
        return ["worktree", "add", *_flag(self.force, "--force"), path, *_optional_ref(self.branch, "branch")]


@dataclass(frozen=True)
class ArchiveIntent(GitIntent):
    name: ClassVar[str] = "archive"
    formats: ClassVar[frozenset[str]] = frozenset({"tar", "tar.gz", "tgz", "zip"})

    output: str = ""
    ref: str = "HEAD"
    format: str = "tar"
    prefix: str | None = None
    paths: tuple[str, ...] = ()

    def to_args(self) -> list[str]:
        if self.format not in self.formats:
            raise InvalidIntentError(f"Unsupported archive format: {self.format!r}")
        args = ["archive", f"--format={self.format}", f"--output={_ref(self.output, 'output file')}"]
        if self.prefix:
            args.append(f"--prefix={self.prefix}")
        return args + [_ref(self.ref, "ref"), *_positional(self.paths, "path")]


@dataclass(frozen=True)
class BundleIntent(GitIntent):
    name: ClassVar[str] = "bundle"
    actions: ClassVar[frozenset[str]] = frozenset({"create", "verify", "list-heads", "unbundle"})

    action: str = "create"
    file: str = ""
    refs: tuple[str, ...] = ()

    def to_args(self) -> list[str]:
        action = self._check_action(self.action)
        bundle_file = _ref(self.file, "bundle file")
        if action != "create":
            return ["bundle", action, bundle_file]
        refs = _positional(self.refs, "ref") if self.refs else ["--all"]
        return ["bundle", "create", bundle_file, *refs]


@dataclass(frozen=True)
class RawIntent(GitIntent):
    """Literal pass-through for commands without a typed intent.

    The command is split like a shell would split it, but is never run
    through one. Global options ahead of the subcommand are refused so a
    raw command cannot reconfigure git itself; arguments after the
    subcommand pass through untouched.
    """

    name: ClassVar[str] = "raw"

    command: str = ""

    def to_args(self) -> list[str]:
        try:
            args = shlex.split(self.command)
        except ValueError as e:
            raise InvalidIntentError(f"Cannot parse git command {self.command!r}: {e}") from e
        if args and args[0] == "git":
            args = args[1:]
        if not args:
            raise InvalidIntentError("Empty git command")
        if args[0].startswith("-"):
            raise InvalidIntentError(f"Git subcommand may not start with '-': {args[0]!r}")
        return args


INTENTS: dict[str, type[GitIntent]] = {
    intent.name: intent
    for intent in (
        InitIntent,
        CloneIntent,
        AddIntent,
        CommitIntent,
        PushIntent,
        PullIntent,
        FetchIntent,
        BranchIntent,
        CheckoutIntent,
        MergeIntent,
        RebaseIntent,
        ResetIntent,
        RevertIntent,
        CherryPickIntent,
        StashIntent,
        TagIntent,
        LogIntent,
        StatusIntent,
        DiffIntent,
        RemoteIntent,
        ConfigIntent,
        SubmoduleIntent,
        WorktreeIntent,
        ArchiveIntent,
        BundleIntent,
    )
}


def _snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower().replace("-", "_")


def build_intent(name: str, options: Mapping[str, Any] | None = None) -> GitIntent:
    """Build a typed intent from a name and an options mapping.

    Option keys may be snake_case or camelCase. A name without a typed
    intent becomes a RawIntent of the name followed by ``options["args"]``.

    Raises:
        InvalidIntentError: On option keys the intent does not accept
    """
    options = dict(options or {})
    intent_class = INTENTS.get(name.strip().lower().replace("_", "-"))

    if intent_class is None:
        extra = options.pop("args", "")
        if options:
            raise InvalidIntentError(f"Raw git command {name!r} only accepts 'args', got: {sorted(options)}")
        if not isinstance(extra, str):
            extra = shlex.join(str(arg) for arg in extra)
        return RawIntent(command=f"{name} {extra}".strip())

    accepted = {field.name for field in fields(intent_class)}
    kwargs: dict[str, Any] = {}
    for key, value in options.items():
        field_name = _snake(key)
        if field_name not in accepted:
            raise InvalidIntentError(f"Unknown option {key!r} for git {intent_class.name}")
        if field_name in _SEQUENCE_FIELDS:
            value = (value,) if isinstance(value, str) else tuple(value)
        elif field_name in _INTEGER_FIELDS and value is not None:
            value = _integer(value, key)
        kwargs[field_name] = value

    return intent_class(**kwargs)
