"""Structured result envelope for tool adapters.

Every adapter entry point reports ``{success, action, message, data?, error?}``
and never lets an exception escape. ``run_tool`` performs that conversion
around any awaitable operation, provider call or git command alike.

Example:
    >>> result = await run_tool("get_repository", lambda: provider.get_repository("octocat", "hello"))
    >>> result.to_dict()["success"]
    True
"""

from __future__ import annotations

import dataclasses
from collections.abc import Awaitable, Callable
from datetime import datetime
from enum import Enum
from typing import Any

import structlog

from vcs_gateway.exceptions import ProviderRequestError, VcsGatewayError
from vcs_gateway.git.diagnostics import GitErrorAnalysis, analyze_git_error
from vcs_gateway.models.domain import CommandResult, StandardError

log = structlog.get_logger(__name__)

_OMITTED_FIELDS = frozenset({"raw", "original_error"})


def to_jsonable(value: Any) -> Any:
    """Convert canonical entities into JSON-compatible values.

    ``raw`` payloads are left out; callers that need them keep the entity.
    """
    if isinstance(value, (CommandResult, StandardError, GitErrorAnalysis)):
        return value.to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            field.name: to_jsonable(getattr(value, field.name))
            for field in dataclasses.fields(value)
            if field.name not in _OMITTED_FIELDS
        }
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value


@dataclasses.dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool invocation."""

    success: bool
    action: str
    message: str
    data: Any = None
    error: str | None = None
    analysis: GitErrorAnalysis | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success, "action": self.action, "message": self.message}
        if self.data is not None:
            result["data"] = to_jsonable(self.data)
        if self.error is not None:
            result["error"] = self.error
        if self.analysis is not None:
            result["analysis"] = self.analysis.to_dict()
        return result


async def run_tool(
    action: str,
    call: Callable[[], Awaitable[Any]],
    success_message: str | None = None,
) -> ToolResult:
    """Await ``call()`` and wrap the outcome in a ToolResult.

    - A returned CommandResult with a non-zero exit becomes a failure,
      annotated with ``analyze_git_error``.
    - Any exception becomes a failure; ProviderRequestError also carries
      its normalized error as ``data``.

    Never raises.
    """
    try:
        outcome = await call()
    except ProviderRequestError as e:
        log.warning("tool_failed", action=action, error_code=e.code.value, error=e.message)
        return ToolResult(False, action, f"{action} failed", data=e.error, error=e.message)
    except VcsGatewayError as e:
        log.warning("tool_failed", action=action, error=e.message)
        return ToolResult(False, action, f"{action} failed", error=e.message)
    except Exception as e:
        log.exception("tool_crashed", action=action)
        return ToolResult(False, action, f"{action} failed", error=str(e) or type(e).__name__)

    if isinstance(outcome, CommandResult) and not outcome.success:
        error_text = outcome.error or outcome.output or f"git exited with status {outcome.exit_code}"
        analysis = analyze_git_error(error_text)
        return ToolResult(
            False,
            action,
            f"{action} failed: {analysis.cause}",
            data=outcome,
            error=error_text,
            analysis=analysis,
        )

    return ToolResult(True, action, success_message or f"{action} completed", data=outcome)
