"""Local git working-copy operations.

Key Components:
    - GitIntent and its subclasses: typed descriptions of git actions
    - build_intent: Builds an intent from a name and an options mapping
    - GitExecutor: Runs intents and returns CommandResult
    - analyze_git_error: Classifies git stderr
"""

from vcs_gateway.git.diagnostics import GitErrorAnalysis, analyze_git_error
from vcs_gateway.git.executor import GitExecutor
from vcs_gateway.git.intents import INTENTS, GitIntent, RawIntent, build_intent

__all__ = [
    "INTENTS",
    "GitErrorAnalysis",
    "GitExecutor",
    "GitIntent",
    "RawIntent",
    "analyze_git_error",
    "build_intent",
]
