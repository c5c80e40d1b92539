"""CLI entry point for vcs-gateway."""

import asyncio
import json
import sys
from typing import Any

import click
import structlog

from vcs_gateway.config.settings import load_settings
from vcs_gateway.exceptions import VcsGatewayError
from vcs_gateway.git.diagnostics import analyze_git_error
from vcs_gateway.git.executor import GitExecutor
from vcs_gateway.providers.registry import ProviderRegistry
from vcs_gateway.tools import ToolResult, run_tool
from vcs_gateway.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)


def _build_registry() -> ProviderRegistry:
    return ProviderRegistry.from_settings(load_settings())


def _emit(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


def _finish(result: ToolResult) -> None:
    _emit(result.to_dict())
    if not result.success:
        sys.exit(1)


def _parse_options(pairs: tuple[str, ...]) -> dict[str, Any]:
    """Parse ``key=value`` pairs; repeated keys collect into a list."""
    options: dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw_value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {pair!r}", param_hint="-o/--option")

        value: Any = raw_value
        if raw_value.lower() in ("true", "false"):
            value = raw_value.lower() == "true"

        if key in options:
            existing = options[key]
            options[key] = [*existing, value] if isinstance(existing, list) else [existing, value]
        else:
            options[key] = value
    return options


@click.group()
@click.option("--log-level", default="WARNING", envvar="LOG_LEVEL", help="Logging level")
@click.option("--debug", is_flag=True, envvar="DEBUG", help="Log every HTTP request and response")
@click.pass_context
def cli(ctx: click.Context, log_level: str, debug: bool) -> None:
    """vcs-gateway: one operation surface over Gitea, GitHub and local git."""
    configure_logging(log_level, debug=debug)
    ctx.obj = {"debug": debug}


@cli.command()
def providers() -> None:
    """List configured providers and which one is the default."""
    try:
        registry = _build_registry()
    except VcsGatewayError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("providers_error", exc_info=True)
        sys.exit(1)

    _emit([descriptor.to_dict() for descriptor in registry.list_providers()])


@cli.command()
@click.option("--provider", "provider_name", help="Provider name (defaults to the default provider)")
def whoami(provider_name: str | None) -> None:
    """Show the user the provider token authenticates as."""
    try:
        result = asyncio.run(_provider_call("get_current_user", provider_name, lambda p: p.get_current_user()))
    except VcsGatewayError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("whoami_error", exc_info=True)
        sys.exit(1)

    _finish(result)


@cli.command()
@click.argument("full_name")
@click.option("--provider", "provider_name", help="Provider name (defaults to the default provider)")
def repo(full_name: str, provider_name: str | None) -> None:
    """Show a repository given as OWNER/NAME."""
    owner, sep, name = full_name.partition("/")
    if not sep or not owner or not name:
        raise click.BadParameter("expected OWNER/NAME", param_hint="FULL_NAME")

    try:
        result = asyncio.run(
            _provider_call("get_repository", provider_name, lambda p: p.get_repository(owner, name))
        )
    except VcsGatewayError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("repo_error", exc_info=True)
        sys.exit(1)

    _finish(result)


@cli.command()
@click.argument("intent")
@click.argument("path", type=click.Path(), default=".")
@click.option("-o", "--option", "option_pairs", multiple=True, help="Intent option as key=value (repeatable)")
@click.option("--timeout", type=float, default=None, help="Kill git after this many seconds")
def git(intent: str, path: str, option_pairs: tuple[str, ...], timeout: float | None) -> None:
    """Run a git INTENT in the working copy at PATH.

    \b
    Examples:
        vcs-gateway git status . -o porcelain=true
        vcs-gateway git reset ./repo -o mode=hard -o target=HEAD~1
        vcs-gateway git stash ./repo -o action=push -o message="wip"
    """
    options = _parse_options(option_pairs)
    executor = GitExecutor(timeout=timeout)
    result = asyncio.run(run_tool(f"git {intent}", lambda: executor.run(intent, options, path)))
    _finish(result)


@cli.command("analyze-error")
@click.argument("source", type=click.File("r"), default="-")
@click.option("--text", help="Error text (read from SOURCE when omitted)")
def analyze_error(source: Any, text: str | None) -> None:
    """Classify git error output and suggest a fix.

    SOURCE is a file holding git stderr; "-" (the default) reads stdin.
    """
    if text is None:
        text = source.read()
    _emit(analyze_git_error(text).to_dict())


async def _provider_call(action: str, provider_name: str | None, call: Any) -> ToolResult:
    registry = _build_registry()
    try:
        provider = registry.require_provider(provider_name)
        return await run_tool(action, lambda: call(provider))
    finally:
        await registry.aclose()


if __name__ == "__main__":
    cli()
