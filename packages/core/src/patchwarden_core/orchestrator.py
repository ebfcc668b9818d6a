"""Run the enabled specialists over a routed diff and synthesise the result."""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from patchwarden_core.models import (
    SPECIALIST_ORDER,
    AnalysisResult,
    DiffRoutingResult,
    FileContent,
    Finding,
    PolicyBundle,
    TokenUsage,
)
from patchwarden_core.specialists import SpecialistInput, run_specialist
from patchwarden_core.synthesizer import synthesize_findings

logger = logging.getLogger(__name__)


def run_orchestrator(
    routing: DiffRoutingResult,
    policy: PolicyBundle,
    file_contents: Iterable[FileContent] | Mapping[str, FileContent],
    extra_findings: Iterable[Finding] = (),
    token_usage: TokenUsage | None = None,
) -> AnalysisResult:
    """Run every enabled specialist in the fixed order and synthesise their findings.

    ``extra_findings`` (e.g. from the soft-rule pass) join the specialist
    findings before deduplication; ``token_usage`` is whatever those extra
    passes spent.
    """
    if isinstance(file_contents, Mapping):
        contents = dict(file_contents)
    else:
        contents = {record.path: record for record in file_contents}

    findings: list[Finding] = []
    ran = 0
    for specialist in SPECIALIST_ORDER:
        if not policy.agents.for_specialist(specialist).enabled:
            logger.debug("Specialist %s disabled", specialist)
            continue
        specialist_findings = run_specialist(
            SpecialistInput(
                specialist=specialist,
                routed_files=routing.by_specialist.get(specialist, []),
                file_contents=contents,
                policy=policy,
            )
        )
        logger.debug("Specialist %s produced %d finding(s)", specialist, len(specialist_findings))
        findings.extend(specialist_findings)
        ran += 1

    findings.extend(extra_findings)
    return synthesize_findings(findings, pass_count=ran, token_usage=token_usage)
