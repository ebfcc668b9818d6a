"""The deterministic review pipeline as plain function calls.

raw file records -> ChangedFiles -> routing -> specialists -> synthesis -> ReviewOutput

No network or filesystem access happens here; callers fetch file contents
and hand them in.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from patchwarden_core.diff import parse_pr_files
from patchwarden_core.models import (
    AnalysisResult,
    ChangedFile,
    DiffRoutingResult,
    FileContent,
    Finding,
    PolicyBundle,
    ReviewOutput,
    TokenUsage,
)
from patchwarden_core.orchestrator import run_orchestrator
from patchwarden_core.review import build_review_output
from patchwarden_core.router import route_diff


@dataclass(frozen=True)
class PipelineResult:
    changed_files: tuple[ChangedFile, ...]
    routing: DiffRoutingResult
    analysis: AnalysisResult
    review: ReviewOutput


def analyze_changes(
    changed_files: Sequence[ChangedFile],
    file_contents: Iterable[FileContent] | Mapping[str, FileContent],
    policy: PolicyBundle,
    extra_findings: Iterable[Finding] = (),
    token_usage: TokenUsage | None = None,
) -> PipelineResult:
    routing = route_diff(changed_files)
    analysis = run_orchestrator(routing, policy, file_contents, extra_findings, token_usage)
    review = build_review_output(analysis, changed_files, policy.enforcement)
    return PipelineResult(tuple(changed_files), routing, analysis, review)


def analyze_files(
    files: Iterable[Mapping],
    file_contents: Iterable[FileContent] | Mapping[str, FileContent],
    policy: PolicyBundle,
) -> PipelineResult:
    """Run the whole pipeline over raw ``{filename, status, patch}`` records."""
    return analyze_changes(parse_pr_files(files, policy.ignore), file_contents, policy)
