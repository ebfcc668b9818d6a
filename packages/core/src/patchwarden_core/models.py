"""Value objects shared by every stage of the review pipeline.

Everything here is created fresh for a single run and held only in memory.
The only persisted shapes (learned rules and the policy snapshot) are
serialised by ``patchwarden_core.policy.load`` and stored by
``patchwarden_store``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal, Mapping

LineKind = Literal["add", "delete", "context"]
FileStatus = Literal["added", "modified", "removed", "renamed"]
FileKind = Literal["generated", "handler", "service", "dal", "model", "config", "test", "other"]
Severity = Literal["critical", "warning", "info"]
RuleSource = Literal["seed", "learned", "policy"]
HardRuleMode = Literal["forbid_regex", "require_regex"]
HardRuleTarget = Literal["added_lines", "file_content"]
EnforcementMode = Literal["warn", "enforce"]
ReviewEvent = Literal["APPROVE", "COMMENT", "REQUEST_CHANGES"]

SEVERITIES: tuple[str, ...] = ("critical", "warning", "info")

SPECIALIST_ORDER: tuple[str, ...] = (
    "security",
    "logging-error",
    "architecture-boundary",
    "api-contract",
    "data-access",
    "reliability",
)


# --------------------------------------------------------------------------- #
# Diff                                                                         #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class DiffHunk:
    header: str
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    content: str


@dataclass(frozen=True)
class ChangedLine:
    """One added or removed line with its marker stripped.

    Added lines are numbered in the new file, removed lines in the old file.
    """

    kind: LineKind
    line_number: int
    content: str


@dataclass(frozen=True)
class ChangedFile:
    path: str
    status: FileStatus
    hunks: tuple[DiffHunk, ...] = ()
    added_lines: tuple[ChangedLine, ...] = ()
    removed_lines: tuple[ChangedLine, ...] = ()
    patch: str = ""


@dataclass(frozen=True)
class FileClassification:
    path: str
    kind: FileKind


@dataclass(frozen=True)
class RoutedFile:
    file: ChangedFile
    classification: FileClassification


@dataclass
class DiffRoutingResult:
    by_specialist: dict[str, list[RoutedFile]]
    generated_touched: list[RoutedFile] = field(default_factory=list)


@dataclass(frozen=True)
class FileContent:
    path: str
    content: str
    language: str = "unknown"


# --------------------------------------------------------------------------- #
# Policy                                                                       #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class Rule:
    """A soft rule: natural-language guidance scoped by a path glob."""

    id: str
    description: str
    scope: str
    pattern: str
    severity: Severity = "warning"
    source: RuleSource = "seed"


@dataclass(frozen=True)
class HardRule:
    """A regex-backed rule evaluated deterministically against the diff."""

    id: str
    description: str
    scope: str
    pattern: str
    severity: Severity = "critical"
    source: RuleSource = "policy"
    category: str = "any"
    mode: HardRuleMode = "forbid_regex"
    target: HardRuleTarget = "added_lines"
    message: str | None = None
    new_code_only: bool = True


@dataclass(frozen=True)
class LearnedRule:
    id: str
    description: str
    scope: str
    pattern: str
    severity: Severity
    confidence: float
    learned_from_pr: int | None = None
    merged_at: str | None = None


@dataclass(frozen=True)
class AllowlistEntry:
    path: str
    rule_ids: tuple[str, ...] | None = None
    reason: str | None = None


@dataclass(frozen=True)
class Settings:
    max_inline_comments: int = 3
    model: str | None = None
    context_budget: int = 50000


@dataclass(frozen=True)
class EnforcementSettings:
    mode: EnforcementMode = "warn"
    block_on: tuple[str, ...] = ("critical",)
    new_code_only: bool = True
    max_comments: int = 3


@dataclass(frozen=True)
class SpecialistSettings:
    enabled: bool = True
    max_findings: int = 50


DEFAULT_SPECIALIST_SETTINGS = SpecialistSettings()


def _default_specialists() -> Mapping[str, SpecialistSettings]:
    return MappingProxyType({name: DEFAULT_SPECIALIST_SETTINGS for name in SPECIALIST_ORDER})


@dataclass(frozen=True)
class AgentSettings:
    specialists: Mapping[str, SpecialistSettings] = field(default_factory=_default_specialists)

    def for_specialist(self, name: str) -> SpecialistSettings:
        return self.specialists.get(name, DEFAULT_SPECIALIST_SETTINGS)


@dataclass(frozen=True)
class RepoConfig:
    """The repository's configuration document after normalisation."""

    soft_rules: tuple[Rule, ...] = ()
    hard_rules: tuple[HardRule, ...] = ()
    ignore: tuple[str, ...] = ()
    allowlist: tuple[AllowlistEntry, ...] = ()
    settings: Settings = field(default_factory=Settings)
    enforcement: EnforcementSettings = field(default_factory=EnforcementSettings)
    agents: AgentSettings = field(default_factory=AgentSettings)


@dataclass(frozen=True)
class PolicySnapshot:
    version: int
    generated_at: str
    soft_rules: tuple[Rule, ...] = ()
    hard_rules: tuple[HardRule, ...] = ()


@dataclass(frozen=True)
class PolicyBundle:
    """The fully merged policy every stage of a run reads from."""

    soft_rules: tuple[Rule, ...] = ()
    hard_rules: tuple[HardRule, ...] = ()
    allowlist: tuple[AllowlistEntry, ...] = ()
    ignore: tuple[str, ...] = ()
    settings: Settings = field(default_factory=Settings)
    enforcement: EnforcementSettings = field(default_factory=EnforcementSettings)
    agents: AgentSettings = field(default_factory=AgentSettings)


# --------------------------------------------------------------------------- #
# Findings and review output                                                   #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class Finding:
    rule_id: str
    severity: Severity
    file: str
    line: int
    title: str
    explanation: str
    suggestion: str | None = None
    category: str | None = None
    agent: str | None = None
    evidence: str | None = None


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(self.input_tokens + other.input_tokens, self.output_tokens + other.output_tokens)


@dataclass(frozen=True)
class AnalysisResult:
    findings: tuple[Finding, ...]
    summary: str
    pass_count: int
    token_usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass(frozen=True)
class InlineComment:
    path: str
    position: int
    body: str


@dataclass(frozen=True)
class ReviewOutput:
    body: str
    comments: tuple[InlineComment, ...]
    event: ReviewEvent
