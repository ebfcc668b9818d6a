"""Deterministic evaluation of regex-backed hard rules."""

from __future__ import annotations

import logging
import re
from typing import Iterable, Mapping

from patchwarden_core.models import FileContent, Finding, HardRule, PolicyBundle, RoutedFile
from patchwarden_core.policy.matching import is_allowlisted, match_glob

logger = logging.getLogger(__name__)


def _compile(rule: HardRule) -> re.Pattern | None:
    try:
        return re.compile(rule.pattern, re.MULTILINE)
    except re.error as e:
        logger.warning("Skipping hard rule %s: invalid pattern %r (%s)", rule.id, rule.pattern, e)
        return None


def _first_added_line(routed_file: RoutedFile) -> int:
    added = routed_file.file.added_lines
    return added[0].line_number if added else 1


def _locate(rule: HardRule, regex: re.Pattern, routed_file: RoutedFile, content: str) -> int:
    if rule.target == "file_content":
        for number, line in enumerate(content.split("\n"), 1):
            if regex.search(line):
                return number
        return 1
    for line in routed_file.file.added_lines:
        if regex.search(line.content):
            return line.line_number
    return _first_added_line(routed_file)


def apply_hard_rules(
    specialist: str,
    routed_files: Iterable[RoutedFile],
    file_contents: Mapping[str, FileContent],
    policy: PolicyBundle,
) -> list[Finding]:
    """Evaluate the hard rules owned by ``specialist`` (or by "any") against each file.

    Emits at most one finding per rule per file. Rules with an invalid
    pattern are skipped; a missing file content is treated as empty text.
    """
    rules = [rule for rule in policy.hard_rules if rule.category in ("any", specialist)]
    findings: list[Finding] = []

    for routed_file in routed_files:
        path = routed_file.file.path
        content_record = file_contents.get(path)
        content = content_record.content if content_record is not None else ""

        for rule in rules:
            if not match_glob(path, rule.scope):
                continue
            if is_allowlisted(path, rule.id, policy):
                logger.debug("Hard rule %s allowlisted for %s", rule.id, path)
                continue
            regex = _compile(rule)
            if regex is None:
                continue

            if rule.target == "file_content":
                text = content
            else:
                text = "\n".join(line.content for line in routed_file.file.added_lines)

            matched = regex.search(text) is not None
            violated = matched if rule.mode == "forbid_regex" else not matched
            if not violated:
                continue

            findings.append(
                Finding(
                    rule_id=rule.id,
                    severity=rule.severity,
                    file=path,
                    line=_locate(rule, regex, routed_file, content),
                    title=rule.description,
                    explanation=rule.message or f"Hard rule violated: {rule.id}",
                    category=specialist,
                    agent=f"{specialist}-agent",
                    evidence=rule.pattern,
                )
            )

    return findings
