"""Convert configuration, learned-rule and snapshot documents to policy objects.

The documents are plain dicts: the parsed ``.patchwarden.yml`` (see
``patchwarden_core.config``) and the JSON payloads kept by a
``patchwarden_store`` backend. Nothing here reads or writes files.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Iterable, Mapping

from patchwarden_core.models import (
    SEVERITIES,
    SPECIALIST_ORDER,
    AgentSettings,
    AllowlistEntry,
    EnforcementSettings,
    HardRule,
    LearnedRule,
    PolicyBundle,
    PolicySnapshot,
    RepoConfig,
    Rule,
    Settings,
    SpecialistSettings,
)
from patchwarden_core.policy.merge import learned_to_rules, merge_policy

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1

_REQUIRED_RULE_FIELDS = ("id", "scope", "pattern")
_RULE_SOURCES = ("seed", "learned", "policy")


class PolicyError(ValueError):
    """A configuration or policy document violates its contract."""


def _severity(value, fallback: str) -> str:
    return value if value in SEVERITIES else fallback


_TRUE_STRINGS = ("true", "yes", "on", "1")
_FALSE_STRINGS = ("false", "no", "off", "0")


def _flag(value, default: bool, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise PolicyError(f"'{key}' must be true or false, got {value!r}")


def _section(raw: Mapping, key: str, expected: type, default):
    value = raw.get(key)
    if value is None:
        return default
    if not isinstance(value, expected):
        raise PolicyError(f"'{key}' must be a {expected.__name__}, got {type(value).__name__}")
    return value


def _check_rule(raw, where: str) -> None:
    if not isinstance(raw, Mapping):
        raise PolicyError(f"{where}: each rule must be a mapping")
    missing = [name for name in _REQUIRED_RULE_FIELDS if not raw.get(name)]
    if missing:
        raise PolicyError(f"{where}: rule {raw.get('id', '<no id>')!r} is missing {', '.join(missing)}")


def parse_rule(raw: Mapping, source: str = "seed", where: str = "soft_rules") -> Rule:
    _check_rule(raw, where)
    return Rule(
        id=str(raw["id"]),
        description=str(raw.get("description", "")),
        scope=str(raw["scope"]),
        pattern=str(raw["pattern"]),
        severity=_severity(raw.get("severity"), "warning"),
        source=raw.get("source") if raw.get("source") in _RULE_SOURCES else source,
    )


def parse_hard_rule(raw: Mapping, source: str = "seed", where: str = "hard_rules") -> HardRule:
    _check_rule(raw, where)
    category = raw.get("category")
    if category is not None and category not in ("any", *SPECIALIST_ORDER):
        logger.warning("Hard rule %r: unknown category %r, applying it to every specialist", raw["id"], category)
        category = None
    return HardRule(
        id=str(raw["id"]),
        description=str(raw.get("description", "")),
        scope=str(raw["scope"]),
        pattern=str(raw["pattern"]),
        severity=_severity(raw.get("severity"), "critical"),
        source=raw.get("source") if raw.get("source") in _RULE_SOURCES else source,
        category=category or "any",
        mode="require_regex" if raw.get("mode") == "require_regex" else "forbid_regex",
        target="file_content" if raw.get("target") == "file_content" else "added_lines",
        message=raw.get("message"),
        new_code_only=_flag(raw.get("new_code_only"), True, "new_code_only"),
    )


def _parse_agents(raw: Mapping) -> AgentSettings:
    specialists = dict(AgentSettings().specialists)
    for name, values in (raw.get("specialists") or {}).items():
        if name not in specialists or not values:
            logger.debug("Ignoring settings for unknown specialist %r", name)
            continue
        current = specialists[name]
        specialists[name] = SpecialistSettings(
            enabled=_flag(values.get("enabled"), current.enabled, "enabled"),
            max_findings=int(values.get("max_findings", current.max_findings)),
        )
    return AgentSettings(specialists=MappingProxyType(specialists))


def parse_repo_config(raw: Mapping | None) -> RepoConfig:
    """Normalise the policy sections of a configuration document.

    ``soft_rules`` takes precedence over the legacy ``rules`` key. Unknown
    severities, categories, modes and targets fall back to their defaults;
    a rule without ``id``, ``scope`` or ``pattern`` raises PolicyError.
    Flags take booleans or true/false/yes/no strings; anything else raises.
    A single ``block_on`` severity may be given as a plain string.
    """
    raw = raw or {}

    soft = [parse_rule(r) for r in _section(raw, "soft_rules", list, [])]
    if not soft:
        soft = [parse_rule(r, where="rules") for r in _section(raw, "rules", list, [])]
    hard = [parse_hard_rule(r) for r in _section(raw, "hard_rules", list, [])]

    allowlist = []
    for entry in _section(raw, "allowlist", list, []):
        if not isinstance(entry, Mapping) or not entry.get("path"):
            raise PolicyError("allowlist: each entry needs a 'path'")
        rule_ids = entry.get("rule_ids")
        allowlist.append(
            AllowlistEntry(
                path=str(entry["path"]),
                rule_ids=tuple(rule_ids) if rule_ids else None,
                reason=entry.get("reason"),
            )
        )

    settings_raw = _section(raw, "settings", dict, {})
    defaults = Settings()
    settings = Settings(
        max_inline_comments=int(settings_raw.get("max_inline_comments", defaults.max_inline_comments)),
        model=settings_raw.get("model") or defaults.model,
        context_budget=int(settings_raw.get("context_budget", defaults.context_budget)),
    )

    enforcement_raw = _section(raw, "enforcement", dict, {})
    block_on = enforcement_raw.get("block_on", EnforcementSettings().block_on)
    if isinstance(block_on, str):
        block_on = [block_on]
    elif not isinstance(block_on, (list, tuple)):
        raise PolicyError(f"'block_on' must be a list of severities, got {type(block_on).__name__}")
    enforcement = EnforcementSettings(
        mode="enforce" if enforcement_raw.get("mode") == "enforce" else "warn",
        block_on=tuple(s for s in block_on if s in SEVERITIES),
        new_code_only=_flag(enforcement_raw.get("new_code_only"), True, "new_code_only"),
        max_comments=int(enforcement_raw.get("max_comments", settings.max_inline_comments)),
    )

    return RepoConfig(
        soft_rules=tuple(soft),
        hard_rules=tuple(hard),
        ignore=tuple(str(p) for p in _section(raw, "ignore", list, [])),
        allowlist=tuple(allowlist),
        settings=settings,
        enforcement=enforcement,
        agents=_parse_agents(_section(raw, "agents", dict, {})),
    )


# --------------------------------------------------------------------------- #
# Learned rules                                                                #
# --------------------------------------------------------------------------- #


def parse_learned_rules(docs: Iterable[Mapping]) -> list[LearnedRule]:
    """Parse learned-rule dicts from a store, skipping malformed entries."""
    rules: list[LearnedRule] = []
    for doc in docs:
        try:
            _check_rule(doc, "learned rules")
            learned_from = doc.get("learned_from") or {}
            rules.append(
                LearnedRule(
                    id=str(doc["id"]),
                    description=str(doc.get("description", "")),
                    scope=str(doc["scope"]),
                    pattern=str(doc["pattern"]),
                    severity=_severity(doc.get("severity"), "warning"),
                    confidence=float(doc.get("confidence", 0.0)),
                    learned_from_pr=learned_from.get("pr_number"),
                    merged_at=learned_from.get("merged_at"),
                )
            )
        except (PolicyError, AttributeError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed learned rule: %s", e)
    return rules


def learned_rule_to_dict(rule: LearnedRule) -> dict:
    return {
        "id": rule.id,
        "description": rule.description,
        "scope": rule.scope,
        "pattern": rule.pattern,
        "severity": rule.severity,
        "source": "learned",
        "confidence": rule.confidence,
        "learned_from": {"pr_number": rule.learned_from_pr, "merged_at": rule.merged_at},
    }


# --------------------------------------------------------------------------- #
# Snapshot                                                                     #
# --------------------------------------------------------------------------- #


def rule_to_dict(rule: Rule) -> dict:
    return {
        "id": rule.id,
        "description": rule.description,
        "scope": rule.scope,
        "pattern": rule.pattern,
        "severity": rule.severity,
        "source": rule.source,
    }


def hard_rule_to_dict(rule: HardRule) -> dict:
    data = {
        "id": rule.id,
        "description": rule.description,
        "scope": rule.scope,
        "pattern": rule.pattern,
        "severity": rule.severity,
        "source": rule.source,
        "category": rule.category,
        "mode": rule.mode,
        "target": rule.target,
        "new_code_only": rule.new_code_only,
    }
    if rule.message is not None:
        data["message"] = rule.message
    return data


def parse_snapshot(doc: Mapping | None) -> PolicySnapshot | None:
    """Parse a stored snapshot; anything without both rule lists is no snapshot."""
    if not doc:
        return None
    soft = doc.get("soft_rules")
    hard = doc.get("hard_rules")
    if not isinstance(soft, list) or not isinstance(hard, list):
        logger.warning("Ignoring policy snapshot without soft_rules/hard_rules lists")
        return None
    try:
        return PolicySnapshot(
            version=int(doc.get("version", SNAPSHOT_VERSION)),
            generated_at=str(doc.get("generated_at", "")),
            soft_rules=tuple(parse_rule(r, source="policy", where="snapshot") for r in soft),
            hard_rules=tuple(parse_hard_rule(r, source="policy", where="snapshot") for r in hard),
        )
    except PolicyError as e:
        logger.warning("Ignoring invalid policy snapshot: %s", e)
        return None


def snapshot_to_dict(policy: PolicyBundle, generated_at: str | None = None) -> dict:
    """Serialise the merged rules of ``policy`` as a snapshot document."""
    return {
        "version": SNAPSHOT_VERSION,
        "generated_at": generated_at or datetime.now(timezone.utc).isoformat(),
        "soft_rules": [rule_to_dict(r) for r in policy.soft_rules],
        "hard_rules": [hard_rule_to_dict(r) for r in policy.hard_rules],
    }


def load_policy(
    raw_config: Mapping | None,
    learned_docs: Iterable[Mapping] = (),
    snapshot_doc: Mapping | None = None,
    mode: str | None = None,
) -> PolicyBundle:
    """Parse every policy source and merge them into the run's PolicyBundle."""
    config = parse_repo_config(raw_config)
    learned = learned_to_rules(parse_learned_rules(learned_docs))
    snapshot = parse_snapshot(snapshot_doc)
    return merge_policy(config, learned, snapshot, mode)
