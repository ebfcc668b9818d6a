"""GitHub review orchestration: fetch, analyse, post."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from github import GithubException
from rich.console import Console

from patchwarden_core.context import gather_file_contents
from patchwarden_core.diff import parse_pr_files
from patchwarden_core.gh.pull_request import get_pr_files, get_pull, get_repo, get_review_comments, post_review
from patchwarden_core.miner import mine_conventions
from patchwarden_core.models import LearnedRule, PolicyBundle, TokenUsage
from patchwarden_core.pipeline import PipelineResult, analyze_changes
from patchwarden_core.providers.anthropic import AnthropicProvider
from patchwarden_core.providers.openai import OpenAIProvider
from patchwarden_core.review import print_shadow_review, run_outputs
from patchwarden_core.semantic import check_soft_rules

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class ReviewSummary:
    """What run_review hands back to the CLI."""

    repo: str
    pr_number: int
    head_sha: str
    event: str  # "APPROVE" | "COMMENT" | "REQUEST_CHANGES"
    findings_count: int = 0
    inline_comments: int = 0
    posted: bool = False
    outputs: dict[str, str] = field(default_factory=dict)
    reviewed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def get_provider(config: dict, model: str | None = None):
    """Return the configured LLM provider, or None when the soft-rule pass is off."""
    provider = config.get("provider")
    if not provider:
        return None
    if provider == "anthropic":
        return AnthropicProvider(api_key=config["anthropic_api_key"], model=model)
    if provider == "openai":
        return OpenAIProvider(api_key=config["openai_api_key"], model=model)
    raise ValueError(f"Unknown provider: {provider!r}. Choose 'anthropic' or 'openai'.")


def run_review(
    repo: str,
    pr_number: int,
    config: dict,
    policy: PolicyBundle,
    auto_confirm: bool = False,
    shadow: bool = False,
    repo_obj=None,
) -> ReviewSummary | None:
    """Review one pull request and post (or, in shadow mode, print) the result.

    Returns None when the run stops early: draft PR, nothing reviewable, or
    the user declined to post.
    """
    this_repo = repo_obj if repo_obj is not None else get_repo(repo, token=config["github_token"])

    try:
        this_pr = get_pull(this_repo, pr_number)
    except GithubException:
        raise ValueError(f"PR #{pr_number} not found in {repo}.")

    if this_pr.draft and not config.get("review_draft_prs", False):
        console.print(
            "[yellow]Skipping draft PR. Set review_draft_prs: true in .patchwarden.yml to review drafts.[/yellow]"
        )
        return None

    head_sha = this_pr.head.sha
    changed_files = parse_pr_files(get_pr_files(this_pr), policy.ignore)
    if not changed_files:
        console.print("[yellow]No reviewable files changed. Nothing to do.[/yellow]")
        return None
    console.print(f"Reviewing PR #{pr_number} at {head_sha[:7]}: {len(changed_files)} file(s)")

    ctx = gather_file_contents(this_repo, changed_files, head_sha, policy.settings.context_budget)
    console.print(
        f"[dim]Context: {len(ctx.changed_files)} changed + {len(ctx.imported_files)} imported file(s) "
        f"(~{ctx.total_token_estimate} tokens)[/dim]"
    )

    extra_findings = []
    usage = TokenUsage()
    provider = get_provider(config, policy.settings.model)
    if provider is not None and policy.soft_rules:
        extra_findings, usage = check_soft_rules(
            provider, policy.soft_rules, changed_files, ctx.changed_files, ctx.imported_files
        )

    result = analyze_changes(changed_files, ctx.changed_files, policy, extra_findings, usage)
    review = result.review
    summary = _summary(repo, pr_number, head_sha, result)

    if shadow:
        print_shadow_review(result.analysis, review, changed_files)
        console.print(
            f"[bold]Shadow review complete. {len(review.comments)} inline comment(s) would be posted "
            f"as {review.event}.[/bold]"
        )
        return summary

    if not auto_confirm:
        answer = input(
            f"Post {len(result.analysis.findings)} finding(s) "
            f"({len(review.comments)} inline) as {review.event}? (y/n): "
        ).strip().lower()
        if answer != "y":
            return None

    post_review(this_pr, review)
    summary.posted = True
    console.print(f"\n[green]Review posted: {review.event}. {len(review.comments)} inline comment(s).[/green]")
    return summary


def _summary(repo: str, pr_number: int, head_sha: str, result: PipelineResult) -> ReviewSummary:
    return ReviewSummary(
        repo=repo,
        pr_number=pr_number,
        head_sha=head_sha,
        event=result.review.event,
        findings_count=len(result.analysis.findings),
        inline_comments=len(result.review.comments),
        outputs=run_outputs(result.analysis, result.review),
    )


def mine_merged_pr(
    repo: str,
    pr_number: int,
    config: dict,
    existing: list[LearnedRule],
    model: str | None = None,
    repo_obj=None,
) -> list[LearnedRule]:
    """Extract new conventions from a merged PR. Returns only the new rules."""
    this_repo = repo_obj if repo_obj is not None else get_repo(repo, token=config["github_token"])
    try:
        this_pr = get_pull(this_repo, pr_number)
    except GithubException:
        raise ValueError(f"PR #{pr_number} not found in {repo}.")

    if not this_pr.merged:
        console.print(f"[yellow]PR #{pr_number} is not merged. Nothing to learn.[/yellow]")
        return []

    provider = get_provider(config, model)
    if provider is None:
        raise ValueError("Convention mining needs an LLM provider. Set provider in .patchwarden.yml.")

    merged_at = this_pr.merged_at.isoformat() if this_pr.merged_at else None
    return mine_conventions(
        provider,
        get_pr_files(this_pr),
        get_review_comments(this_pr),
        pr_number=pr_number,
        merged_at=merged_at,
        existing=existing,
    )
