"""Turn an AnalysisResult into a GitHub review: body, inline comments and event."""

from __future__ import annotations

from typing import Iterable, Sequence

from rich.console import Console

from patchwarden_core.models import (
    AnalysisResult,
    ChangedFile,
    EnforcementSettings,
    Finding,
    InlineComment,
    ReviewOutput,
)
from patchwarden_core.positions import get_line_content, line_to_diff_position
from patchwarden_core.synthesizer import severity_counts

console = Console()

REVIEW_SIGNATURE = "<!-- patchwarden-review -->"

_SEVERITY_COLOR = {"critical": "red", "warning": "yellow", "info": "blue"}


def format_inline_comment(finding: Finding) -> str:
    body = f"**[{finding.severity.upper()}]** **{finding.title}**\n\n{finding.explanation}"
    if finding.suggestion:
        body += f"\n\n**Suggestion:** {finding.suggestion}"
    body += f"\n\n<sub>Rule: `{finding.rule_id}`</sub>"
    return body


def format_summary_body(result: AnalysisResult) -> str:
    """Build the top-level review body.

    Every finding is listed here, including the ones that could not be
    anchored to a diff position.
    """
    findings = result.findings
    counts = severity_counts(findings)

    lines = [REVIEW_SIGNATURE, "## Review summary\n", f"> {result.summary}\n"]

    if not findings:
        lines.append("No issues found. The changes look consistent with the repository policy.\n")
    else:
        lines.append("| Severity | Count |")
        lines.append("|----------|:-----:|")
        for severity, count in counts.items():
            if count:
                lines.append(f"| {severity.capitalize()} | {count} |")

        lines.append("\n### Details\n")
        for finding in findings:
            lines.append(f"#### **[{finding.severity.upper()}]** {finding.title}")
            lines.append(f"`{finding.file}:{finding.line}` · Rule: `{finding.rule_id}`\n")
            lines.append(finding.explanation)
            if finding.suggestion:
                lines.append(f"\n> **Suggestion:** {finding.suggestion}")
            lines.append("")

    usage = result.token_usage
    lines.append(
        f"<sub>{result.pass_count} specialist pass(es) · "
        f"tokens: {usage.input_tokens} in / {usage.output_tokens} out</sub>"
    )
    return "\n".join(lines)


def determine_event(findings: Sequence[Finding], enforcement: EnforcementSettings) -> str:
    """Choose the review event.

    No findings approves. In warn mode anything else is a comment; in enforce
    mode a finding whose severity is in ``block_on`` requests changes.
    """
    if not findings:
        return "APPROVE"
    if enforcement.mode != "enforce":
        return "COMMENT"
    if any(finding.severity in enforcement.block_on for finding in findings):
        return "REQUEST_CHANGES"
    return "COMMENT"


def select_inline_comments(
    findings: Iterable[Finding],
    changed_files: Sequence[ChangedFile],
    limit: int,
) -> list[InlineComment]:
    """Take ranked findings in order, keeping those that map to a diff position, up to ``limit``."""
    comments: list[InlineComment] = []
    for finding in findings:
        if len(comments) >= limit:
            break
        position = line_to_diff_position(changed_files, finding.file, finding.line)
        if position is None:
            continue
        comments.append(InlineComment(path=finding.file, position=position, body=format_inline_comment(finding)))
    return comments


def build_review_output(
    result: AnalysisResult,
    changed_files: Sequence[ChangedFile],
    enforcement: EnforcementSettings,
) -> ReviewOutput:
    return ReviewOutput(
        body=format_summary_body(result),
        comments=tuple(select_inline_comments(result.findings, changed_files, enforcement.max_comments)),
        event=determine_event(result.findings, enforcement),
    )


def run_outputs(result: AnalysisResult, review: ReviewOutput) -> dict[str, str]:
    """Key/value outputs for a CI step (``$GITHUB_OUTPUT`` format)."""
    counts = severity_counts(result.findings)
    return {
        "findings-count": str(len(result.findings)),
        "critical-count": str(counts["critical"]),
        "warning-count": str(counts["warning"]),
        "review-event": review.event,
        "tokens-used": str(result.token_usage.total),
    }


def print_shadow_review(result: AnalysisResult, review: ReviewOutput, changed_files: Sequence[ChangedFile]) -> None:
    """Print findings to the terminal without posting anything to GitHub."""
    if not result.findings:
        console.print("[green]Shadow mode: no findings.[/green]")
        return

    by_path = {f.path: f for f in changed_files}
    console.print(f"\n[bold]Shadow review: {len(result.findings)} finding(s), event {review.event}[/bold]\n")
    for finding in result.findings:
        color = _SEVERITY_COLOR.get(finding.severity, "white")
        console.print(
            f"[bold cyan]{finding.file}[/bold cyan]  line [bold]{finding.line}[/bold]  "
            f"[{color}]{finding.severity.upper()}[/{color}]  [dim]{finding.rule_id}[/dim]"
        )
        changed_file = by_path.get(finding.file)
        code = get_line_content(changed_file, finding.line).strip() if changed_file else ""
        if code:
            console.print(f"  [dim]{code}[/dim]")
        console.print(f"  {finding.title}")
        console.print(f"  {finding.explanation}")
        console.print()
    console.print(f"[bold]{result.summary}[/bold]")
