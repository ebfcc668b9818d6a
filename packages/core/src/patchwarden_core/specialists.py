"""Built-in specialist checks and the analyzer that runs them.

Each specialist is a list of :class:`Check` records rather than its own code
path. A check names the text it inspects (``target``), the regex that
triggers it, an optional ``unless`` regex that clears it, and a ``guard``
deciding whether a routed file is in scope at all.

Targets:

* ``file``        one finding per guarded file, on line 1
* ``added_line``  one finding per matching added line
* ``added_text``  one finding if the joined added lines match (and ``unless`` does not)
* ``content``     one finding if the full file content matches (and ``unless`` does not)
* ``import``      one finding per matching import line of the file content, on line 1

Consecutive ``added_line`` checks are evaluated line by line, all checks per
line, so findings come out in source order.
"""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping, Sequence

from patchwarden_core.models import FileContent, Finding, PolicyBundle, RoutedFile
from patchwarden_core.policy.hard_rules import apply_hard_rules
from patchwarden_core.router import is_test_path

Guard = Callable[[RoutedFile, str], bool]

_IMPORT_LINE_RE = re.compile(r"^\s*import\s+.*$", re.MULTILINE)


def _always(routed_file: RoutedFile, content: str) -> bool:
    return True


def _kind_is(*kinds: str) -> Guard:
    return lambda routed_file, content: routed_file.classification.kind in kinds


def _kind_is_not(*kinds: str) -> Guard:
    return lambda routed_file, content: routed_file.classification.kind not in kinds


def _not_test(routed_file: RoutedFile, content: str) -> bool:
    return not is_test_path(routed_file.file.path)


_REQUEST_PATH_RE = re.compile(r"/biz/|/handler/|/service/")


def _request_path(routed_file: RoutedFile, content: str) -> bool:
    return _not_test(routed_file, content) and bool(_REQUEST_PATH_RE.search(routed_file.file.path.lower()))


@dataclass(frozen=True)
class Check:
    rule_id: str
    severity: str
    title: str
    explanation: str
    target: str
    pattern: re.Pattern | None = None
    unless: re.Pattern | None = None
    suggestion: str | None = None
    guard: Guard = _always


@dataclass(frozen=True)
class SpecialistInput:
    specialist: str
    routed_files: Sequence[RoutedFile]
    file_contents: Mapping[str, FileContent]
    policy: PolicyBundle


_SECRET_EXPLANATION = "Credentials belong in runtime configuration or a secret manager, never in committed source."
_SECRET_SUGGESTION = "Load the value from configuration or a secret manager at runtime."

SPECIALIST_CHECKS: Mapping[str, tuple[Check, ...]] = MappingProxyType({
    "security": (
        Check(
            rule_id="security-generated-file-edit",
            severity="critical",
            title="Generated file modified",
            explanation="This file looks generated. Change its source definition and regenerate it instead of editing by hand.",
            target="file",
            guard=_kind_is("generated"),
        ),
        Check(
            rule_id="security-hardcoded-secret-assignment",
            severity="critical",
            title="Possible hardcoded secret in code",
            explanation=_SECRET_EXPLANATION,
            suggestion=_SECRET_SUGGESTION,
            target="added_line",
            pattern=re.compile(r"""(?:api[_-]?key|secret|token|password)\s*[:=]\s*["'][^"']{8,}["']""", re.IGNORECASE),
        ),
        Check(
            rule_id="security-long-hex-literal",
            severity="critical",
            title="Long hex literal detected",
            explanation=_SECRET_EXPLANATION,
            suggestion=_SECRET_SUGGESTION,
            target="added_line",
            pattern=re.compile(r"\b[a-fA-F0-9]{32,}\b"),
        ),
        Check(
            rule_id="security-aws-access-key",
            severity="critical",
            title="AWS-style access key detected",
            explanation=_SECRET_EXPLANATION,
            suggestion=_SECRET_SUGGESTION,
            target="added_line",
            pattern=re.compile(r"\bAKIA[0-9A-Z]{16}\b"),
        ),
        Check(
            rule_id="security-private-key-material",
            severity="critical",
            title="Private key material detected",
            explanation=_SECRET_EXPLANATION,
            suggestion=_SECRET_SUGGESTION,
            target="added_line",
            pattern=re.compile(r"-----BEGIN\s+(?:RSA|EC|OPENSSH|PRIVATE)\s+KEY-----"),
        ),
    ),
    "logging-error": (
        Check(
            rule_id="logging-legacy-v1",
            severity="warning",
            title="Legacy logging API used in new code",
            explanation="New code should use the repository's structured logging API, not the legacy one.",
            suggestion="Switch this call to the structured logger.",
            target="added_line",
            pattern=re.compile(r"\blog\.V1\."),
            guard=_not_test,
        ),
        Check(
            rule_id="logging-console-usage",
            severity="warning",
            title="Console logging in application code",
            explanation="Application code should log through the project logger so output carries consistent context.",
            suggestion="Replace the console call with the project logging abstraction.",
            target="added_line",
            pattern=re.compile(r"\bconsole\.(log|error|warn)\("),
            guard=_not_test,
        ),
        Check(
            rule_id="logging-catch-no-log",
            severity="warning",
            title="Catch block appears to miss error logging/propagation",
            explanation="A new catch block neither logs nor rethrows, so failures in it go unnoticed.",
            suggestion="Log the error with context, rethrow it, or both.",
            target="added_text",
            pattern=re.compile(r"\bcatch\s*\("),
            unless=re.compile(r"\blog(?:ger)?\.|\bthrow\b|\.Error\(|\.error\("),
            guard=_not_test,
        ),
    ),
    "architecture-boundary": (
        Check(
            rule_id="arch-handler-direct-data-access",
            severity="warning",
            title="Handler appears to depend directly on DAL/DB concerns",
            explanation="Handlers stay thin: data access goes through the service layer.",
            suggestion="Move the DAL/DB work into a service and call the service from the handler.",
            target="import",
            pattern=re.compile(r"/dal\b|/repository\b|config\.MysqlCli|gorm\."),
            guard=_kind_is("handler"),
        ),
        Check(
            rule_id="arch-model-upward-dependency",
            severity="warning",
            title="Model layer imports service/handler layer",
            explanation="Models must not depend on the application layers built on top of them.",
            target="import",
            pattern=re.compile(r"/service\b|/handler\b"),
            guard=_kind_is("model"),
        ),
    ),
    "api-contract": (
        Check(
            rule_id="api-missing-request-validation",
            severity="warning",
            title="Request validation pattern not detected",
            explanation="Endpoint handlers should validate incoming payloads with the project's standard validation flow.",
            suggestion="Bind and validate the request before running business logic.",
            target="content",
            pattern=re.compile(
                r"@router\s+|\.GET\(|\.POST\(|\.PUT\(|\.DELETE\(|func\s+[A-Z][A-Za-z0-9_]*\s*\(.*RequestContext"
            ),
            unless=re.compile(r"BindAndValidate\(|schema\.parse\(|z\.object\(|Joi\.|validator\.|pydantic|validate\("),
            guard=_kind_is("handler"),
        ),
    ),
    "data-access": (
        Check(
            rule_id="data-access-outside-dal",
            severity="warning",
            title="Direct data-access usage outside DAL/config layer",
            explanation="Database and cache clients belong behind the DAL/repository boundary.",
            suggestion="Move this access into the DAL and call it from the service or handler.",
            target="added_line",
            pattern=re.compile(r"config\.MysqlCli|gorm\.|sql\.Open\(|db\.Query\(|db\.Exec\(|RedisCli|redis\.NewClient"),
            guard=_kind_is_not("dal", "config"),
        ),
    ),
    "reliability": (
        Check(
            rule_id="reliability-panic-in-runtime",
            severity="warning",
            title="panic introduced in runtime path",
            explanation="Runtime paths should return errors instead of panicking.",
            suggestion="Return an error and let the caller handle it.",
            target="added_line",
            pattern=re.compile(r"\bpanic\("),
            guard=_not_test,
        ),
        Check(
            rule_id="reliability-background-context",
            severity="info",
            title="Background/TODO context used in request/business path",
            explanation="Request and business paths should pass the caller's context along for cancellation and deadlines.",
            suggestion="Accept the caller's context instead of creating a new one.",
            target="added_line",
            pattern=re.compile(r"context\.Background\(|context\.TODO\("),
            guard=_request_path,
        ),
        Check(
            rule_id="reliability-todo-runtime",
            severity="info",
            title="Runtime code contains TODO/FIXME placeholder",
            explanation="Placeholders left in production paths ship incomplete behaviour.",
            target="added_line",
            pattern=re.compile(r'panic\("implement me"\)|TODO|FIXME'),
            guard=_not_test,
        ),
    ),
})


def _finding(check: Check, specialist: str, path: str, line: int, evidence: str | None = None) -> Finding:
    return Finding(
        rule_id=check.rule_id,
        severity=check.severity,
        file=path,
        line=line,
        title=check.title,
        explanation=check.explanation,
        suggestion=check.suggestion,
        category=specialist,
        agent=f"{specialist}-agent",
        evidence=evidence,
    )


def _run_line_checks(checks: list[Check], specialist: str, routed_file: RoutedFile) -> list[Finding]:
    findings = []
    for line in routed_file.file.added_lines:
        for check in checks:
            if check.pattern.search(line.content):
                findings.append(
                    _finding(check, specialist, routed_file.file.path, line.line_number, line.content.strip())
                )
    return findings


def _run_check(check: Check, specialist: str, routed_file: RoutedFile, content: str) -> list[Finding]:
    path = routed_file.file.path
    added = routed_file.file.added_lines

    if check.target == "file":
        return [_finding(check, specialist, path, 1)]

    if check.target == "import":
        return [
            _finding(check, specialist, path, 1, line.strip())
            for line in _IMPORT_LINE_RE.findall(content)
            if check.pattern.search(line)
        ]

    text = "\n".join(line.content for line in added) if check.target == "added_text" else content
    if check.pattern is not None and not check.pattern.search(text):
        return []
    if check.unless is not None and check.unless.search(text):
        return []

    if check.target == "added_text":
        line = next((a.line_number for a in added if check.pattern.search(a.content)), 1)
    else:
        line = added[0].line_number if added else 1
    return [_finding(check, specialist, path, line)]


def run_checks(
    specialist: str,
    checks: Sequence[Check],
    routed_files: Sequence[RoutedFile],
    file_contents: Mapping[str, FileContent],
) -> list[Finding]:
    """Evaluate ``checks`` against every routed file, in file then check order."""
    findings: list[Finding] = []
    for routed_file in routed_files:
        record = file_contents.get(routed_file.file.path)
        content = record.content if record is not None else ""
        active = [check for check in checks if check.guard(routed_file, content)]
        for is_line_check, group in itertools.groupby(active, key=lambda c: c.target == "added_line"):
            if is_line_check:
                findings.extend(_run_line_checks(list(group), specialist, routed_file))
            else:
                for check in group:
                    findings.extend(_run_check(check, specialist, routed_file, content))
    return findings


def run_specialist(specialist_input: SpecialistInput) -> list[Finding]:
    """Run one specialist: built-in checks, then its hard rules, capped at max_findings."""
    name = specialist_input.specialist
    findings = run_checks(
        name,
        SPECIALIST_CHECKS.get(name, ()),
        specialist_input.routed_files,
        specialist_input.file_contents,
    )
    findings.extend(
        apply_hard_rules(name, specialist_input.routed_files, specialist_input.file_contents, specialist_input.policy)
    )
    limit = specialist_input.policy.agents.for_specialist(name).max_findings
    return findings[:limit]
