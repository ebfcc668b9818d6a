"""Classify changed files by path and route them to specialists."""

from __future__ import annotations

from typing import Iterable

from patchwarden_core.models import (
    SPECIALIST_ORDER,
    ChangedFile,
    DiffRoutingResult,
    FileClassification,
    RoutedFile,
)

_COMMON_SPECIALISTS = ("security", "logging-error", "reliability")

_KIND_SPECIALISTS: dict[str, tuple[str, ...]] = {
    "test": ("security", "reliability"),
    "generated": ("security", "architecture-boundary"),
    "handler": (*_COMMON_SPECIALISTS, "architecture-boundary", "api-contract", "data-access"),
    "service": (*_COMMON_SPECIALISTS, "architecture-boundary", "data-access"),
    "dal": (*_COMMON_SPECIALISTS, "architecture-boundary"),
    "config": _COMMON_SPECIALISTS,
    "model": (*_COMMON_SPECIALISTS, "architecture-boundary", "data-access", "api-contract"),
    "other": (*_COMMON_SPECIALISTS, "architecture-boundary", "data-access", "api-contract"),
}


def is_test_path(path: str) -> bool:
    lower = path.lower()
    basename = lower.rsplit("/", 1)[-1]
    return (
        "/test/" in lower
        or "/tests/" in lower
        or lower.endswith(".test.ts")
        or lower.endswith("_test.go")
        or lower.endswith("_test.py")
        or (basename.startswith("test_") and basename.endswith(".py"))
    )


def classify_path(path: str) -> str:
    """Return the file kind for ``path``; the first matching kind wins."""
    lower = path.lower()

    if (
        "/generated/" in lower
        or "/gen/" in lower
        or "biz/model/" in lower
        or lower.endswith("_gen.go")
    ):
        return "generated"
    if "/handler/" in lower or "/handlers/" in lower or "/api/" in lower:
        return "handler"
    if "/service/" in lower or "/services/" in lower:
        return "service"
    if "/dal/" in lower or "/repository/" in lower or "/repos/" in lower:
        return "dal"
    if "/model/" in lower or "/models/" in lower:
        return "model"
    if "/config/" in lower or lower.endswith(("config.ts", "config.go", "config.py")):
        return "config"
    if is_test_path(path):
        return "test"
    return "other"


def specialists_for_kind(kind: str) -> tuple[str, ...]:
    return _KIND_SPECIALISTS.get(kind, _KIND_SPECIALISTS["other"])


def route_diff(changed_files: Iterable[ChangedFile]) -> DiffRoutingResult:
    """Classify each file once and place it in every specialist bucket it maps to."""
    by_specialist: dict[str, list[RoutedFile]] = {name: [] for name in SPECIALIST_ORDER}
    generated: list[RoutedFile] = []

    for changed_file in changed_files:
        classification = FileClassification(path=changed_file.path, kind=classify_path(changed_file.path))
        routed = RoutedFile(file=changed_file, classification=classification)
        for specialist in specialists_for_kind(classification.kind):
            by_specialist[specialist].append(routed)
        if classification.kind == "generated":
            generated.append(routed)

    return DiffRoutingResult(by_specialist=by_specialist, generated_touched=generated)
