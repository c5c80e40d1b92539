"""vcs-gateway: one operation contract over GitHub, Gitea and local git."""

__version__ = "0.1.0"
