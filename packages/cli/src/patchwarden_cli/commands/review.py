"""review command: review a GitHub pull request."""

from __future__ import annotations

import os

import click
from rich.console import Console

from patchwarden_cli.auth import require_github_token
from patchwarden_cli.loading import load_run_policy
from patchwarden_core.gh.pull_request import get_pull_requests, get_repo
from patchwarden_core.reviewer import run_review

console = Console()


def write_github_outputs(outputs: dict[str, str], path: str) -> None:
    """Append ``key=value`` lines to the file GitHub Actions reads step outputs from."""
    with open(path, "a", encoding="utf-8") as f:
        for key, value in outputs.items():
            f.write(f"{key}={value}\n")


@click.command("review")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option(
    "--pr",
    "pr_number",
    type=int,
    default=None,
    help="Pull request number. Omit to list open PRs interactively.",
)
@click.option(
    "--mode",
    type=click.Choice(["warn", "enforce"]),
    default=None,
    help="Enforcement mode. Overrides enforcement.mode in the config file.",
)
@click.option(
    "--provider",
    type=click.Choice(["anthropic", "openai"]),
    default=None,
    help="LLM provider for the soft-rule pass. Overrides the config file.",
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompts.")
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: print findings without posting to GitHub.",
)
@click.pass_context
def review_cmd(
    ctx,
    repo: str,
    pr_number: int | None,
    mode: str | None,
    provider: str | None,
    yes: bool,
    shadow: bool,
):
    """Review a pull request against the repository policy.

    Runs the built-in specialists and hard rules over the PR diff, adds the
    LLM soft-rule pass when a provider is configured, and posts one review
    with inline comments.

    \b
    Environment variables:
      GITHUB_TOKEN         GitHub token (or use the gh CLI)
      ANTHROPIC_API_KEY    Required when provider is anthropic
      OPENAI_API_KEY       Required when provider is openai
      GITHUB_OUTPUT        When set, run outputs are appended to this file
    """
    config = ctx.obj["config"]
    store = ctx.obj["store"]

    if provider is not None:
        config["provider"] = provider
    token = require_github_token(config)

    if config.get("provider") == "anthropic" and not config.get("anthropic_api_key"):
        raise click.UsageError("ANTHROPIC_API_KEY environment variable is not set.")
    if config.get("provider") == "openai" and not config.get("openai_api_key"):
        raise click.UsageError("OPENAI_API_KEY environment variable is not set.")

    policy = load_run_policy(config, store, mode)
    this_repo = get_repo(repo, token=token)

    if pr_number is None:
        prs = list(get_pull_requests(this_repo))
        if not prs:
            console.print("[yellow]No open pull requests found.[/yellow]")
            return
        console.print("\nOpen pull requests:")
        for pr in prs:
            console.print(f"  [bold]#{pr.number}[/bold]  {pr.title}")
        pr_number = click.prompt("\nEnter the pull request number", type=int)

    try:
        summary = run_review(
            repo=repo,
            pr_number=pr_number,
            config=config,
            policy=policy,
            auto_confirm=yes,
            shadow=shadow,
            repo_obj=this_repo,
        )
    except ValueError as e:
        raise click.ClickException(str(e))

    output_path = os.environ.get("GITHUB_OUTPUT")
    if summary is not None and output_path:
        write_github_outputs(summary.outputs, output_path)
