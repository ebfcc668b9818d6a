"""Unified-diff parsing: hunks, changed lines and per-file change records."""

from __future__ import annotations

import logging
import re
from typing import Iterable, Mapping

from patchwarden_core.models import ChangedFile, ChangedLine, DiffHunk
from patchwarden_core.policy.matching import match_glob

logger = logging.getLogger(__name__)

_HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)")

# Lockfiles, bundler output and binary assets never carry reviewable code.
DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "**/*.min.js",
    "**/*.min.css",
    "**/*.map",
    "**/*.png",
    "**/*.jpg",
    "**/*.gif",
    "**/*.ico",
    "**/*.woff",
    "**/*.woff2",
    "**/*.ttf",
    "**/*.eot",
    "**/*.svg",
    "**/*.pdf",
)

_KNOWN_STATUSES = {"added", "removed", "renamed"}


def _patch_lines(patch: str) -> list[str]:
    lines = patch.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def parse_hunks(patch: str) -> list[DiffHunk]:
    """Split a unified-diff patch into hunks.

    Lines before the first ``@@`` header (``diff --git``, ``---``/``+++``) are
    dropped. A header whose ``,count`` is omitted counts one line. Anything
    that does not parse as a header is treated as content of the open hunk.
    """
    if not patch:
        return []

    hunks: list[DiffHunk] = []
    header: str | None = None
    starts: tuple[int, int, int, int] = (0, 0, 0, 0)
    content: list[str] = []

    def close() -> None:
        if header is not None:
            old_start, old_lines, new_start, new_lines = starts
            hunks.append(DiffHunk(header, old_start, old_lines, new_start, new_lines, "\n".join(content)))

    for line in _patch_lines(patch):
        match = _HUNK_HEADER_RE.match(line)
        if match:
            close()
            header = line
            starts = (
                int(match.group(1)),
                int(match.group(2)) if match.group(2) else 1,
                int(match.group(3)),
                int(match.group(4)) if match.group(4) else 1,
            )
            content = []
        elif header is not None:
            content.append(line)
        else:
            logger.debug("Dropping line outside any hunk: %r", line[:80])

    close()
    return hunks


def extract_changed_lines(hunks: Iterable[DiffHunk]) -> tuple[list[ChangedLine], list[ChangedLine]]:
    """Return ``(added, removed)`` lines numbered in new/old file space."""
    added: list[ChangedLine] = []
    removed: list[ChangedLine] = []

    for hunk in hunks:
        new_line = hunk.new_start
        old_line = hunk.old_start
        for line in hunk.content.split("\n"):
            if line.startswith("+"):
                added.append(ChangedLine("add", new_line, line[1:]))
                new_line += 1
            elif line.startswith("-"):
                removed.append(ChangedLine("delete", old_line, line[1:]))
                old_line += 1
            elif line.startswith("\\"):
                # "\ No newline at end of file"
                continue
            else:
                new_line += 1
                old_line += 1

    return added, removed


def normalize_status(status: str | None) -> str:
    if status in _KNOWN_STATUSES:
        return status
    return "modified"


def should_ignore_file(path: str, extra_patterns: Iterable[str] = ()) -> bool:
    """Return True if ``path`` matches a default or caller-supplied ignore glob."""
    for pattern in (*DEFAULT_IGNORE_PATTERNS, *extra_patterns):
        if match_glob(path, pattern):
            return True
    return False


def parse_pr_files(files: Iterable[Mapping], ignore_patterns: Iterable[str] = ()) -> list[ChangedFile]:
    """Build ChangedFile records from raw per-file PR records.

    Each record is a mapping with ``filename``, ``status`` and an optional
    ``patch``. Ignored files and files without a patch (binary, too large)
    are left out.
    """
    ignore = tuple(ignore_patterns)
    changed: list[ChangedFile] = []

    for record in files:
        path = record.get("filename")
        patch = record.get("patch")
        if not path:
            continue
        if should_ignore_file(path, ignore):
            logger.debug("Ignoring %s", path)
            continue
        if not patch:
            logger.debug("Skipping %s: no patch available", path)
            continue

        hunks = parse_hunks(patch)
        added, removed = extract_changed_lines(hunks)
        changed.append(
            ChangedFile(
                path=path,
                status=normalize_status(record.get("status")),
                hunks=tuple(hunks),
                added_lines=tuple(added),
                removed_lines=tuple(removed),
                patch=patch,
            )
        )

    return changed


def split_git_diff(diff_text: str) -> list[dict]:
    """Split a multi-file ``git diff`` into raw per-file records.

    The records have the same shape GitHub returns for PR files, so a local
    diff can go through :func:`parse_pr_files` unchanged.
    """
    records: list[dict] = []
    current: dict | None = None
    patch_lines: list[str] = []

    def flush() -> None:
        if current is not None:
            current["patch"] = "\n".join(patch_lines)
            records.append(current)

    for line in diff_text.splitlines():
        if line.startswith("diff --git "):
            flush()
            parts = line.split(" ")
            new_path = parts[3] if len(parts) >= 4 else parts[-1]
            current = {"filename": new_path.removeprefix("b/"), "status": "modified"}
            patch_lines = []
            continue
        if current is None:
            continue
        if not patch_lines:
            if line.startswith("new file"):
                current["status"] = "added"
                continue
            if line.startswith("deleted file"):
                current["status"] = "removed"
                continue
            if line.startswith("rename from") or line.startswith("rename to"):
                current["status"] = "renamed"
                continue
            if line.startswith(("index ", "similarity index", "old mode", "new mode", "Binary files")):
                continue
            if line.startswith("--- ") or line.startswith("+++ "):
                if line.startswith("+++ ") and line[4:] != "/dev/null":
                    current["filename"] = line[4:].removeprefix("b/")
                continue
        patch_lines.append(line)

    flush()
    return records
