"""Soft-rule pass: ask an LLM whether changed files break natural-language rules.

Soft rules cannot be checked with a regex, so this pass sends the rules in
scope together with the relevant file contents and turns the model's JSON
answer into findings. It is optional; the deterministic pipeline runs
without it.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from patchwarden_core.models import SEVERITIES, ChangedFile, FileContent, Finding, Rule, TokenUsage
from patchwarden_core.policy.matching import match_rules_to_files
from patchwarden_core.providers.base import BaseProvider

logger = logging.getLogger(__name__)

SEMANTIC_AGENT = "semantic-agent"

_SYSTEM_PROMPT = """You are a precise code reviewer checking pull request changes against team rules
that linters cannot express. Only report violations you are confident about. Never speculate."""


def _format_files(files: Iterable[FileContent]) -> str:
    return "\n\n".join(f"### {f.path}\n```{f.language}\n{f.content}\n```" for f in files)


def build_rule_prompt(rules: Sequence[Rule], files: Sequence[FileContent], context_files: Sequence[FileContent] = ()) -> str:
    rules_text = "\n".join(
        f"- **{r.id}** [{r.severity}]: {r.description}\n  Check: {r.pattern}\n  Applies to files matching: `{r.scope}`"
        for r in rules
    )
    context_section = ""
    if context_files:
        context_section = (
            "## Imported Files (context only, do not review these)\n" + _format_files(context_files) + "\n\n"
        )
    return f"""## Rules to Check
{rules_text}

## Changed Files
{_format_files(files)}

{context_section}### Output Format:
Respond with **only** a valid JSON list:

[
  {{
    "rule_id": "<id of the violated rule>",
    "severity": "<critical|warning|info>",
    "file": "<path of the changed file>",
    "line": <line number in the new file (integer)>,
    "title": "<short description of the violation>",
    "explanation": "<why this breaks the rule>",
    "suggestion": "<how to fix it (optional)>"
  }}
]

Only check a file against rules whose scope matches it.
If there are no violations, return: []
Do not return any text outside the JSON block."""


def parse_findings(data, known_files: set[str], rule_severity: dict[str, str]) -> list[Finding]:
    """Convert the model's JSON list into findings, dropping malformed entries."""
    if not isinstance(data, list):
        return []

    findings: list[Finding] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        rule_id = item.get("rule_id") or item.get("ruleId")
        path = item.get("file")
        line = item.get("line")
        title = item.get("title")
        if not rule_id or path not in known_files or not isinstance(line, int) or line < 1 or not title:
            logger.debug("Dropping malformed semantic finding: %r", item)
            continue
        severity = item.get("severity")
        if severity not in SEVERITIES:
            severity = rule_severity.get(rule_id, "warning")
        findings.append(
            Finding(
                rule_id=str(rule_id),
                severity=severity,
                file=path,
                line=line,
                title=str(title),
                explanation=str(item.get("explanation") or title),
                suggestion=item.get("suggestion") or None,
                category="semantic",
                agent=SEMANTIC_AGENT,
            )
        )
    return findings


def check_soft_rules(
    provider: BaseProvider,
    rules: Sequence[Rule],
    changed_files: Sequence[ChangedFile],
    file_contents: Sequence[FileContent],
    context_files: Sequence[FileContent] = (),
) -> tuple[list[Finding], TokenUsage]:
    """Run the soft-rule pass and return its findings and token spend."""
    file_rules = match_rules_to_files(rules, changed_files)
    if not file_rules:
        logger.info("No soft rules match the changed files; skipping semantic pass.")
        return [], TokenUsage()

    active: dict[str, Rule] = {}
    for applicable in file_rules.values():
        for rule in applicable:
            active.setdefault(rule.id, rule)

    relevant = [f for f in file_contents if f.path in file_rules]
    if not relevant:
        return [], TokenUsage()

    prompt = build_rule_prompt(list(active.values()), relevant, context_files)
    completion = provider.complete(_SYSTEM_PROMPT, prompt)
    if completion is None:
        return [], TokenUsage()

    findings = parse_findings(
        provider.parse_json(completion.text),
        known_files={f.path for f in relevant},
        rule_severity={rule_id: rule.severity for rule_id, rule in active.items()},
    )
    logger.info("Semantic pass: %d finding(s) from %d rule(s)", len(findings), len(active))
    return findings, completion.usage
