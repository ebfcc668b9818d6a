"""CLI entry point for patchwarden.

Commands:
  review   review a GitHub pull request and post the result
  check    review a local unified diff (git diff output) without GitHub
  mine     learn conventions from a merged pull request
  policy   show the merged policy or persist it as the snapshot
  init     write a starter .patchwarden.yml and CI workflow
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
import yaml
from rich.console import Console

from patchwarden_cli.commands.check import check_cmd
from patchwarden_cli.commands.init import init_cmd
from patchwarden_cli.commands.mine import mine_cmd
from patchwarden_cli.commands.policy import policy_group
from patchwarden_cli.commands.review import review_cmd

console = Console()


def _build_store(config: dict):
    """Instantiate the configured store from .patchwarden.yml settings.

      store: file  -> FileStore (learned_rules_path, policy_path; the default)
      store: gist  -> GistStore (requires gist_id and a GitHub token)
      store: noop  -> NoOpStore (nothing persisted)
    """
    from patchwarden_store.noop import NoOpStore

    store_type = config.get("store") or "file"

    if store_type == "gist":
        from patchwarden_store.gist import GistStore

        gist_id = config.get("gist_id")
        token = config.get("github_token")
        if not gist_id or not token:
            console.print("[yellow]GistStore requires gist_id and a GitHub token. Falling back to no store.[/yellow]")
            return NoOpStore()
        return GistStore(gist_id=gist_id, token=token)

    if store_type == "file":
        from patchwarden_store.file import FileStore

        return FileStore(
            learned_rules_path=config.get("learned_rules_path") or ".patchwarden-learned.json",
            policy_path=config.get("policy_path") or ".patchwarden-policy.json",
        )

    return NoOpStore()


def _version() -> str:
    try:
        return importlib.metadata.version("patchwarden")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0"


@click.group()
@click.version_option(version=_version(), prog_name="patchwarden")
@click.option(
    "--config",
    "config_path",
    default=".patchwarden.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PATCHWARDEN_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log pipeline details to stderr.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Diff-aware pull request review with layered repository policy."""
    from patchwarden_cli.auth import resolve_github_token
    from patchwarden_core.config import load_config

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except (ValueError, yaml.YAMLError) as e:
        raise click.UsageError(str(e))

    token = resolve_github_token()
    if token:
        config["github_token"] = token

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path
    ctx.call_on_close(store.close)


main.add_command(review_cmd)
main.add_command(check_cmd)
main.add_command(mine_cmd)
main.add_command(policy_group)
main.add_command(init_cmd)
