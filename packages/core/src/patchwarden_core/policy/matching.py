"""Path-glob matching for rule scopes, ignore lists and allowlists."""

from __future__ import annotations

from typing import Iterable

from wcmatch import glob

from patchwarden_core.models import ChangedFile, PolicyBundle, Rule

# minimatch semantics: ``**`` spans directories and ``{a,b}`` expands.
GLOB_FLAGS = glob.GLOBSTAR | glob.BRACE | glob.FORCEUNIX


def match_glob(path: str, pattern: str) -> bool:
    return glob.globmatch(path, pattern, flags=GLOB_FLAGS)


def is_allowlisted(path: str, rule_id: str, policy: PolicyBundle) -> bool:
    """True if an allowlist entry covers ``path`` for ``rule_id``.

    An entry without rule ids covers every rule for the paths it matches.
    """
    for entry in policy.allowlist:
        if not match_glob(path, entry.path):
            continue
        if not entry.rule_ids or rule_id in entry.rule_ids:
            return True
    return False


def match_rules_to_files(rules: Iterable[Rule], changed_files: Iterable[ChangedFile]) -> dict[str, list[Rule]]:
    """Return file path -> rules whose scope matches it (files with no rules omitted)."""
    rules = list(rules)
    file_rules: dict[str, list[Rule]] = {}
    for changed_file in changed_files:
        applicable = [rule for rule in rules if match_glob(changed_file.path, rule.scope)]
        if applicable:
            file_rules[changed_file.path] = applicable
    return file_rules


def get_active_rules(rules: Iterable[Rule], changed_files: Iterable[ChangedFile]) -> list[Rule]:
    """Return each rule that applies to at least one changed file, once, in first-seen order."""
    seen: set[str] = set()
    active: list[Rule] = []
    for applicable in match_rules_to_files(rules, changed_files).values():
        for rule in applicable:
            if rule.id not in seen:
                seen.add(rule.id)
                active.append(rule)
    return active
