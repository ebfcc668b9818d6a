"""mine command: learn conventions from a merged pull request."""

from __future__ import annotations

import click
from rich.console import Console

from patchwarden_cli.auth import require_github_token
from patchwarden_core.policy.load import learned_rule_to_dict, parse_learned_rules
from patchwarden_core.reviewer import mine_merged_pr

console = Console()


@click.command("mine")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option("--pr", "pr_number", type=int, required=True, help="Merged pull request number.")
@click.option(
    "--provider",
    type=click.Choice(["anthropic", "openai"]),
    default=None,
    help="LLM provider. Overrides the config file.",
)
@click.option("--model", default=None, help="Model name passed to the provider.")
@click.pass_context
def mine_cmd(ctx, repo: str, pr_number: int, provider: str | None, model: str | None):
    """Extract coding conventions from a merged PR and store them as learned rules.

    Learned rules join the policy on the next run once their confidence is
    at least 0.5. Rule ids already in the store are never overwritten.
    """
    config = ctx.obj["config"]
    store = ctx.obj["store"]

    if provider is not None:
        config["provider"] = provider
    if not config.get("provider"):
        raise click.UsageError("Convention mining needs an LLM provider. Pass --provider or set provider.")
    key_name = f"{config['provider']}_api_key"
    if not config.get(key_name):
        raise click.UsageError(f"{key_name.upper()} environment variable is not set.")
    require_github_token(config)

    stored = store.load_learned_rules()
    existing = parse_learned_rules(stored)

    try:
        new_rules = mine_merged_pr(repo, pr_number, config, existing, model=model)
    except ValueError as e:
        raise click.ClickException(str(e))

    if not new_rules:
        console.print("[dim]No new conventions found.[/dim]")
        return

    store.save_learned_rules(list(stored) + [learned_rule_to_dict(r) for r in new_rules])
    console.print(f"[green]Learned {len(new_rules)} new convention(s) from PR #{pr_number}:[/green]")
    for rule in new_rules:
        console.print(f"  [bold]{rule.id}[/bold] ({rule.severity}, {rule.confidence:.2f}) {rule.description}")
