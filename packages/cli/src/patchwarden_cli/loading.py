"""Config + store -> PolicyBundle, with config errors reported as usage errors."""

from __future__ import annotations

import click

from patchwarden_core.models import PolicyBundle
from patchwarden_core.policy.load import PolicyError, load_policy


def load_run_policy(config: dict, store, mode: str | None = None) -> PolicyBundle:
    try:
        return load_policy(config, store.load_learned_rules(), store.load_snapshot(), mode)
    except PolicyError as e:
        raise click.UsageError(f"Invalid policy configuration: {e}")
