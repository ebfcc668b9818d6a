"""policy commands: inspect the merged policy and persist it as the snapshot."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from patchwarden_cli.loading import load_run_policy
from patchwarden_core.policy.load import snapshot_to_dict

console = Console()


@click.group("policy")
def policy_group():
    """Inspect or snapshot the effective repository policy."""


@policy_group.command("show")
@click.option(
    "--mode",
    type=click.Choice(["warn", "enforce"]),
    default=None,
    help="Show the policy as it would run under this enforcement mode.",
)
@click.pass_context
def show_cmd(ctx, mode: str | None):
    """Print the merged policy: soft rules, hard rules, allowlist, enforcement."""
    policy = load_run_policy(ctx.obj["config"], ctx.obj["store"], mode)

    soft = Table(title=f"Soft rules ({len(policy.soft_rules)})", show_lines=False)
    soft.add_column("ID", style="bold")
    soft.add_column("Source")
    soft.add_column("Severity")
    soft.add_column("Scope")
    soft.add_column("Description")
    for rule in policy.soft_rules:
        soft.add_row(rule.id, rule.source, rule.severity, rule.scope, rule.description)
    console.print(soft)

    hard = Table(title=f"Hard rules ({len(policy.hard_rules)})")
    hard.add_column("ID", style="bold")
    hard.add_column("Source")
    hard.add_column("Severity")
    hard.add_column("Category")
    hard.add_column("Scope")
    hard.add_column("Pattern")
    for rule in policy.hard_rules:
        hard.add_row(rule.id, rule.source, rule.severity, rule.category, rule.scope, rule.pattern)
    console.print(hard)

    if policy.allowlist:
        allow = Table(title="Allowlist")
        allow.add_column("Path")
        allow.add_column("Rules")
        allow.add_column("Reason")
        for entry in policy.allowlist:
            allow.add_row(entry.path, ", ".join(entry.rule_ids or ()) or "*", entry.reason or "")
        console.print(allow)

    enforcement = policy.enforcement
    console.print(
        f"Enforcement: [bold]{enforcement.mode}[/bold], blocks on {', '.join(enforcement.block_on) or 'nothing'}, "
        f"at most {enforcement.max_comments} inline comment(s)"
    )
    if policy.ignore:
        console.print(f"Ignored paths: {', '.join(policy.ignore)}")


@policy_group.command("snapshot")
@click.pass_context
def snapshot_cmd(ctx):
    """Write the merged policy to the store as the new snapshot.

    The snapshot is the lowest policy layer: learned rules and config rules
    with the same id still win over it.
    """
    store = ctx.obj["store"]
    policy = load_run_policy(ctx.obj["config"], store)
    document = snapshot_to_dict(policy)
    store.save_snapshot(document)
    console.print(
        f"[green]Saved policy snapshot: {len(document['soft_rules'])} soft rule(s), "
        f"{len(document['hard_rules'])} hard rule(s).[/green]"
    )
