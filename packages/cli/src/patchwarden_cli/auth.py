"""GitHub token resolution.

Resolution order, first hit wins:
  1. PATCHWARDEN_GITHUB_TOKEN (a PAT, e.g. one with gist scope for GistStore)
  2. GITHUB_TOKEN (injected by GitHub Actions)
  3. `gh auth token` (a local GitHub CLI session)
"""

from __future__ import annotations

import logging
import os
import subprocess

import click

logger = logging.getLogger(__name__)

TOKEN_ENV_VARS = ("PATCHWARDEN_GITHUB_TOKEN", "GITHUB_TOKEN")


def _token_from_gh_cli() -> str | None:
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    token = result.stdout.strip()
    if token:
        logger.debug("Resolved GitHub token via gh CLI session.")
    return token or None


def resolve_github_token() -> str | None:
    """Return a GitHub token, or None if no source has one. Never raises."""
    for name in TOKEN_ENV_VARS:
        token = os.environ.get(name)
        if token:
            return token
    return _token_from_gh_cli()


def require_github_token(config: dict) -> str:
    """Return the token already resolved into ``config`` or raise a UsageError."""
    token = config.get("github_token")
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    return token
