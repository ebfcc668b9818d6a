"""File content gathering for a review run.

Changed files are fetched first, then the files they import, until the token
budget runs out. GitHub fetches are pinned to the PR's head SHA so every file
read belongs to the same commit as the diff.
"""

from __future__ import annotations

import logging
import math
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable

from github import GithubException

from patchwarden_core.models import ChangedFile, FileContent

logger = logging.getLogger(__name__)

LANG_MAP = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "py": "python",
    "go": "go",
    "java": "java",
    "rs": "rust",
    "rb": "ruby",
    "yml": "yaml",
    "yaml": "yaml",
    "json": "json",
    "md": "markdown",
    "sh": "shell",
    "bash": "shell",
}

_JS_IMPORT_RE = re.compile(r"""(?:import\s+.*?\s+from\s+['"](.+?)['"]|require\s*\(\s*['"](.+?)['"]\s*\))""")
_PY_IMPORT_RE = re.compile(r"(?:from\s+(\S+)\s+import|^import\s+(\S+))", re.MULTILINE)
_GO_IMPORT_RE = re.compile(r"""import\s+(?:"([^"]+)"|\(\s*([\s\S]*?)\s*\))""")
_GO_QUOTED_RE = re.compile(r'"([^"]+)"')


@dataclass
class ReviewContext:
    changed_files: list[FileContent] = field(default_factory=list)
    imported_files: list[FileContent] = field(default_factory=list)
    total_token_estimate: int = 0

    @property
    def all_files(self) -> list[FileContent]:
        return [*self.changed_files, *self.imported_files]


def estimate_tokens(text: str) -> int:
    """Rough token count: about four characters per token."""
    return math.ceil(len(text) / 4)


def detect_language(path: str) -> str:
    ext = path.rsplit(".", 1)[-1].lower() if "." in path else ""
    return LANG_MAP.get(ext, ext or "unknown")


def extract_imports(content: str, language: str) -> list[str]:
    """Return the import specifiers worth resolving inside the repository.

    Only relative imports are kept for JS/TS and Python; every Go import is
    returned.
    """
    imports: list[str] = []
    if language in ("typescript", "javascript"):
        for match in _JS_IMPORT_RE.finditer(content):
            spec = match.group(1) or match.group(2)
            if spec.startswith(".") or spec.startswith("/"):
                imports.append(spec)
    elif language == "python":
        for match in _PY_IMPORT_RE.finditer(content):
            module = match.group(1) or match.group(2)
            if module.startswith("."):
                imports.append(module)
    elif language == "go":
        for match in _GO_IMPORT_RE.finditer(content):
            if match.group(1):
                imports.append(match.group(1))
            elif match.group(2):
                imports.extend(_GO_QUOTED_RE.findall(match.group(2)))
    return imports


def resolve_import_path(import_path: str, from_file: str, language: str) -> list[str]:
    """Return candidate repository paths for an import, most likely first."""
    directory = posixpath.dirname(from_file)
    spec = import_path

    if language == "python":
        dots = len(spec) - len(spec.lstrip("."))
        # "." is the current package, each extra dot goes one package up
        for _ in range(max(dots - 1, 0)):
            directory = posixpath.dirname(directory)
        spec = spec[dots:].replace(".", "/")

    base = posixpath.normpath(posixpath.join(directory, spec)) if spec else posixpath.normpath(directory or ".")
    base = base.lstrip("/")
    if base == ".." or base.startswith("../"):
        return []

    if language in ("typescript", "javascript"):
        return [
            f"{base}.ts",
            f"{base}.tsx",
            f"{base}.js",
            f"{base}.jsx",
            f"{base}/index.ts",
            f"{base}/index.js",
        ]
    if language == "python":
        return [f"{base}.py", f"{base}/__init__.py"]
    return [base]


def _collect(
    changed_files: Iterable[ChangedFile],
    budget: int,
    fetch: Callable[[str], str | None],
) -> ReviewContext:
    remaining = budget
    ctx = ReviewContext()
    fetched: set[str] = set()

    for changed_file in changed_files:
        if changed_file.status == "removed":
            continue
        content = fetch(changed_file.path)
        if not content:
            continue
        tokens = estimate_tokens(content)
        if tokens > remaining:
            logger.debug("Skipping %s: %d tokens over remaining budget %d", changed_file.path, tokens, remaining)
            continue
        remaining -= tokens
        ctx.changed_files.append(FileContent(changed_file.path, content, detect_language(changed_file.path)))
        fetched.add(changed_file.path)

    for record in list(ctx.changed_files):
        for spec in extract_imports(record.content, record.language):
            for candidate in resolve_import_path(spec, record.path, record.language):
                if candidate in fetched:
                    break
                content = fetch(candidate)
                if not content:
                    continue
                tokens = estimate_tokens(content)
                if tokens > remaining:
                    break
                remaining -= tokens
                ctx.imported_files.append(FileContent(candidate, content, detect_language(candidate)))
                fetched.add(candidate)
                break

    ctx.total_token_estimate = budget - remaining
    return ctx


def gather_file_contents(repo, changed_files: Iterable[ChangedFile], head_sha: str, budget: int) -> ReviewContext:
    """Fetch changed files and their direct imports from GitHub at ``head_sha``."""

    def fetch(path: str) -> str | None:
        try:
            contents = repo.get_contents(path, ref=head_sha)
        except GithubException as e:
            logger.debug("Could not fetch %s@%s: %s", path, head_sha[:7], e)
            return None
        if isinstance(contents, list):
            return None  # a directory
        return contents.decoded_content.decode("utf-8", errors="replace")

    return _collect(changed_files, budget, fetch)


def read_local_contents(changed_files: Iterable[ChangedFile], root: str | Path, budget: int) -> ReviewContext:
    """Read changed files and their direct imports from a working tree."""
    root = Path(root)

    def fetch(path: str) -> str | None:
        target = root / path
        if not target.is_file():
            return None
        try:
            return target.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.warning("Could not read %s: %s", target, e)
            return None

    return _collect(changed_files, budget, fetch)
