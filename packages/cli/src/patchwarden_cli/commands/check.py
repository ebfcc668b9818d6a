"""check command: run the deterministic pipeline over a local diff."""

from __future__ import annotations

import click
from rich.console import Console

from patchwarden_cli.loading import load_run_policy
from patchwarden_core.context import read_local_contents
from patchwarden_core.diff import parse_pr_files, split_git_diff
from patchwarden_core.pipeline import analyze_changes
from patchwarden_core.review import print_shadow_review

console = Console()


@click.command("check")
@click.argument("diff_file", type=click.File("r", encoding="utf-8"), default="-")
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    show_default=True,
    help="Working tree to read full file contents from.",
)
@click.option(
    "--mode",
    type=click.Choice(["warn", "enforce"]),
    default=None,
    help="Enforcement mode. Overrides enforcement.mode in the config file.",
)
@click.pass_context
def check_cmd(ctx, diff_file, root: str, mode: str | None):
    """Check a unified diff (e.g. `git diff main...HEAD`) against the policy.

    Reads DIFF_FILE, or stdin when omitted or "-". Nothing is posted; the
    findings are printed. Exits with status 1 when the review would request
    changes.
    """
    config = ctx.obj["config"]
    store = ctx.obj["store"]
    policy = load_run_policy(config, store, mode)

    changed_files = parse_pr_files(split_git_diff(diff_file.read()), policy.ignore)
    if not changed_files:
        console.print("[yellow]No reviewable files in the diff.[/yellow]")
        return

    ctx_files = read_local_contents(changed_files, root, policy.settings.context_budget)
    result = analyze_changes(changed_files, ctx_files.changed_files, policy)

    print_shadow_review(result.analysis, result.review, changed_files)
    console.print(f"Review event: [bold]{result.review.event}[/bold]")

    if result.review.event == "REQUEST_CHANGES":
        ctx.exit(1)
