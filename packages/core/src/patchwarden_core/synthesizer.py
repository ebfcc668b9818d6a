"""Deduplicate, rank and summarise specialist findings."""

from __future__ import annotations

from typing import Iterable

from patchwarden_core.models import AnalysisResult, Finding, TokenUsage

SEVERITY_RANK = {"critical": 3, "warning": 2, "info": 1}

EMPTY_SUMMARY = "No semantic issues found by the multi-agent review pipeline."


def dedupe_findings(findings: Iterable[Finding]) -> list[Finding]:
    """Collapse findings sharing (rule_id, file, line, title).

    The most severe duplicate wins; on a tie the first one seen is kept.
    The surviving finding takes the slot of the first one seen.
    """
    unique: dict[tuple, Finding] = {}
    for finding in findings:
        key = (finding.rule_id, finding.file, finding.line, finding.title)
        existing = unique.get(key)
        if existing is None or SEVERITY_RANK[finding.severity] > SEVERITY_RANK[existing.severity]:
            unique[key] = finding
    return list(unique.values())


def rank_findings(findings: Iterable[Finding]) -> list[Finding]:
    """Sort by severity (most severe first), then file path, then line."""
    return sorted(findings, key=lambda f: (-SEVERITY_RANK[f.severity], f.file, f.line))


def severity_counts(findings: Iterable[Finding]) -> dict[str, int]:
    counts = {severity: 0 for severity in SEVERITY_RANK}
    for finding in findings:
        counts[finding.severity] += 1
    return counts


def build_summary(findings: list[Finding]) -> str:
    if not findings:
        return EMPTY_SUMMARY
    counts = severity_counts(findings)
    return (
        f"Multi-agent review found {len(findings)} issue(s): "
        f"{counts['critical']} critical, {counts['warning']} warning, {counts['info']} info."
    )


def synthesize_findings(
    findings: Iterable[Finding],
    pass_count: int = 1,
    token_usage: TokenUsage | None = None,
) -> AnalysisResult:
    ranked = rank_findings(dedupe_findings(findings))
    return AnalysisResult(
        findings=tuple(ranked),
        summary=build_summary(ranked),
        pass_count=pass_count,
        token_usage=token_usage or TokenUsage(),
    )
