"""init command: write a starter .patchwarden.yml and, optionally, a CI workflow."""

from __future__ import annotations

import importlib.metadata
import logging
import subprocess
from pathlib import Path

import click
import yaml
from rich.console import Console

console = Console()
logger = logging.getLogger(__name__)

_API_KEY_ENV = {"anthropic": "ANTHROPIC_API_KEY", "openai": "OPENAI_API_KEY"}

_STARTER_POLICY: dict = {
    "soft_rules": [
        {
            "id": "handlers-validate-input",
            "description": "HTTP handlers validate request input before calling services.",
            "scope": "**/handler/**",
            "pattern": "Validate input at the handler boundary",
            "severity": "warning",
        }
    ],
    "hard_rules": [
        {
            "id": "no-debug-print",
            "description": "No debug printing in committed code.",
            "scope": "**/*.py",
            "pattern": r"^\s*print\(",
            "severity": "warning",
            "category": "logging-error",
            "message": "Use logging instead of print.",
        }
    ],
    "ignore": [],
    "allowlist": [],
    "enforcement": {"mode": "warn", "block_on": ["critical"], "max_comments": 3},
}

_WORKFLOW_TEMPLATE = """\
name: patchwarden

on:
  pull_request:
    types: [opened, synchronize, reopened, ready_for_review]

jobs:
  review:
    runs-on: ubuntu-latest
    permissions:
      contents: read
      pull-requests: write

    steps:
      - uses: actions/checkout@v4

      - uses: actions/setup-python@v5
        with:
          python-version: "3.12"

      - name: Install patchwarden
        run: pip install "{requirement}"

      - name: Review pull request
        id: patchwarden
        env:
          GITHUB_TOKEN: ${{{{ secrets.GITHUB_TOKEN }}}}
{secret_env}        run: |
          patchwarden review \\
            --repo ${{{{ github.repository }}}} \\
            --pr ${{{{ github.event.pull_request.number }}}} \\
            --mode {mode} \\
            --yes
"""


@click.command("init")
@click.option("--repo", default=None, help="GitHub repository (owner/name). Detected from the git remote.")
@click.pass_context
def init_cmd(ctx, repo: str | None):
    """Set up patchwarden in the current repository.

    Writes a config file with starter rules and can generate
    .github/workflows/patchwarden.yml so every pull request is reviewed.
    """
    config_path = Path((ctx.obj or {}).get("config_path") or ".patchwarden.yml")
    console.print("\n[bold cyan]patchwarden init[/bold cyan]\n")

    if repo is None:
        repo = _detect_repo_from_git()
        if repo:
            console.print(f"[dim]Detected repository: {repo}[/dim]")
        else:
            repo = click.prompt("GitHub repository (owner/name)")

    provider = click.prompt(
        "LLM provider for soft rules (none keeps reviews fully deterministic)",
        type=click.Choice(["none", "anthropic", "openai"]),
        default="none",
    )
    store_type = click.prompt(
        "Where to keep learned rules and the policy snapshot",
        type=click.Choice(["file", "gist", "noop"]),
        default="file",
    )
    mode = click.prompt(
        "Enforcement mode",
        type=click.Choice(["warn", "enforce"]),
        default="warn",
    )

    config: dict = {"store": store_type}
    if provider != "none":
        config["provider"] = provider
    if store_type == "gist":
        config["gist_id"] = click.prompt("Gist id (create a secret gist first, e.g. with `gh gist create`)")
        console.print(
            "[yellow]The gist store needs a token with gist scope. Set PATCHWARDEN_GITHUB_TOKEN "
            "to a personal access token; the Actions GITHUB_TOKEN cannot write gists.[/yellow]"
        )

    policy = {**_STARTER_POLICY, "enforcement": {**_STARTER_POLICY["enforcement"], "mode": mode}}
    _write_config(config_path, config, policy)
    console.print(f"[green]Wrote {config_path}[/green]")

    if click.confirm("\nGenerate .github/workflows/patchwarden.yml?", default=True):
        workflow_path = _write_workflow(Path(".github/workflows"), provider, mode)
        console.print(f"[green]Wrote {workflow_path}[/green]")
        if provider in _API_KEY_ENV:
            console.print(f"[yellow]Add {_API_KEY_ENV[provider]} to the repository secrets.[/yellow]")

    console.print("\nTry it locally: [bold]git diff main...HEAD | patchwarden check[/bold]")
    console.print(f"Or on a PR:     [bold]patchwarden review --repo {repo} --pr <number> --shadow[/bold]")


def _detect_repo_from_git() -> str | None:
    """Return owner/name from the origin remote when it points at github.com."""
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    url = result.stdout.strip()
    if "github.com" not in url:
        return None
    # https://github.com/owner/name.git and git@github.com:owner/name.git
    slug = url.split("github.com")[-1].lstrip("/:").removesuffix(".git")
    return slug if slug.count("/") == 1 else None


def _write_config(path: Path, config: dict, policy: dict) -> None:
    """Write the config file. Keys already present in an existing file are kept."""
    existing: dict = {}
    if path.exists():
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        if isinstance(loaded, dict):
            existing = loaded
        else:
            logger.warning("Replacing %s: it does not contain a YAML mapping", path)
    merged = {**config, **policy, **existing}
    path.write_text(yaml.safe_dump(merged, default_flow_style=False, sort_keys=False), encoding="utf-8")


def _requirement(provider: str) -> str:
    try:
        version = importlib.metadata.version("patchwarden")
    except importlib.metadata.PackageNotFoundError:
        version = None
    name = f"patchwarden[{provider}]" if provider in _API_KEY_ENV else "patchwarden"
    return f"{name}=={version}" if version else name


def _write_workflow(workflow_dir: Path, provider: str, mode: str) -> Path:
    workflow_dir.mkdir(parents=True, exist_ok=True)
    secret_env = ""
    if provider in _API_KEY_ENV:
        key = _API_KEY_ENV[provider]
        secret_env = f"          {key}: ${{{{ secrets.{key} }}}}\n"
    path = workflow_dir / "patchwarden.yml"
    path.write_text(
        _WORKFLOW_TEMPLATE.format(requirement=_requirement(provider), secret_env=secret_env, mode=mode),
        encoding="utf-8",
    )
    return path
