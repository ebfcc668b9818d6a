"""Learn repository conventions from merged pull requests.

The model reads a merged PR's diff and review comments and proposes a few
conventions. Proposals become :class:`LearnedRule` records; the policy merge
only turns the confident ones into soft rules.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from patchwarden_core.models import SEVERITIES, LearnedRule
from patchwarden_core.providers.base import BaseProvider

logger = logging.getLogger(__name__)

MAX_CONVENTIONS = 3

_SYSTEM_PROMPT = """You extract implicit coding conventions from merged pull requests.
Focus on semantic patterns, not style: error handling, logging and tracing, validation,
authentication and authorization, function signature conventions, resource cleanup and
response formats. Extracting nothing is better than extracting noise."""


def build_extraction_prompt(files: Iterable[Mapping], comments: Iterable[Mapping]) -> str:
    diff = "\n\n".join(f"### {f['filename']}\n```\n{f['patch']}\n```" for f in files if f.get("patch"))
    comment_lines = [f"- **{c.get('path')}:{c.get('line') or '?'}**: {c.get('body', '')}" for c in comments]
    comment_text = "\n".join(comment_lines) if comment_lines else "No review comments."
    return f"""## PR Diff
{diff}

## Review Comments
{comment_text}

Extract 0-{MAX_CONVENTIONS} conventions you are highly confident about.

### Output Format:
Respond with **only** a valid JSON list:

[
  {{
    "id": "<unique kebab-case id>",
    "description": "<what the convention is>",
    "scope": "<glob of the files it applies to, e.g. src/services/**>",
    "pattern": "<what to check for in code>",
    "severity": "<critical|warning|info>",
    "confidence": <0.0-1.0>
  }}
]

If no clear conventions are found, return: []
Do not return any text outside the JSON block."""


def parse_conventions(
    data,
    pr_number: int,
    merged_at: str | None,
    existing_ids: set[str],
) -> list[LearnedRule]:
    """Turn extracted conventions into new LearnedRules, skipping known ids."""
    if not isinstance(data, list):
        return []

    rules: list[LearnedRule] = []
    seen = set(existing_ids)
    for item in data:
        if not isinstance(item, dict):
            continue
        rule_id = item.get("id")
        if not rule_id or not item.get("scope") or not item.get("pattern"):
            logger.debug("Dropping incomplete convention: %r", item)
            continue
        if rule_id in seen:
            logger.debug("Convention %s already learned", rule_id)
            continue
        try:
            confidence = min(max(float(item.get("confidence", 0.0)), 0.0), 1.0)
        except (TypeError, ValueError):
            confidence = 0.0
        severity = item.get("severity")
        rules.append(
            LearnedRule(
                id=str(rule_id),
                description=str(item.get("description", "")),
                scope=str(item["scope"]),
                pattern=str(item["pattern"]),
                severity=severity if severity in SEVERITIES else "warning",
                confidence=confidence,
                learned_from_pr=pr_number,
                merged_at=merged_at,
            )
        )
        seen.add(rule_id)
    return rules


def mine_conventions(
    provider: BaseProvider,
    files: Iterable[Mapping],
    comments: Iterable[Mapping],
    pr_number: int,
    merged_at: str | None,
    existing: Iterable[LearnedRule] = (),
) -> list[LearnedRule]:
    """Return conventions newly learned from one merged PR."""
    prompt = build_extraction_prompt(list(files), list(comments))
    completion = provider.complete(_SYSTEM_PROMPT, prompt)
    if completion is None:
        return []
    rules = parse_conventions(
        provider.parse_json(completion.text),
        pr_number=pr_number,
        merged_at=merged_at,
        existing_ids={rule.id for rule in existing},
    )
    logger.info("Learned %d new convention(s) from PR #%d", len(rules), pr_number)
    return rules
