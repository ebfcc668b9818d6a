"""Layered policy merge: snapshot < learned < repository configuration."""

from __future__ import annotations

import dataclasses
from typing import Iterable

from patchwarden_core.models import LearnedRule, PolicyBundle, PolicySnapshot, RepoConfig, Rule

MIN_LEARNED_CONFIDENCE = 0.5


def merge_by_id(*layers: Iterable) -> list:
    """Merge rule layers by id; later layers win, first-seen position is kept."""
    merged: dict[str, object] = {}
    for layer in layers:
        for rule in layer:
            merged[rule.id] = rule
    return list(merged.values())


def _unique(items: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(items))


def learned_to_rules(learned: Iterable[LearnedRule]) -> list[Rule]:
    """Turn confident learned rules into soft rules; the rest are dropped."""
    return [
        Rule(
            id=rule.id,
            description=rule.description,
            scope=rule.scope,
            pattern=rule.pattern,
            severity=rule.severity,
            source="learned",
        )
        for rule in learned
        if rule.confidence >= MIN_LEARNED_CONFIDENCE
    ]


def merge_policy(
    config: RepoConfig,
    learned_rules: Iterable[Rule],
    snapshot: PolicySnapshot | None,
    mode_override: str | None = None,
) -> PolicyBundle:
    """Build the PolicyBundle for one run.

    Soft rules merge snapshot, then learned, then configured rules; hard rules
    merge snapshot, then configured rules. Everything else comes from the
    repository configuration, with the enforcement mode replaced only when
    ``mode_override`` is given.
    """
    snapshot_soft = snapshot.soft_rules if snapshot is not None else ()
    snapshot_hard = snapshot.hard_rules if snapshot is not None else ()

    enforcement = config.enforcement
    if mode_override:
        enforcement = dataclasses.replace(enforcement, mode=mode_override)

    return PolicyBundle(
        soft_rules=tuple(merge_by_id(snapshot_soft, learned_rules, config.soft_rules)),
        hard_rules=tuple(merge_by_id(snapshot_hard, config.hard_rules)),
        allowlist=config.allowlist,
        ignore=_unique(config.ignore),
        settings=config.settings,
        enforcement=enforcement,
        agents=config.agents,
    )
