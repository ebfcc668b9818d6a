"""Tests for gathering file contents and resolving imports within a token budget."""

from unittest.mock import MagicMock

import pytest
from github import GithubException

from patchwarden_core.context import (
    detect_language,
    estimate_tokens,
    extract_imports,
    gather_file_contents,
    read_local_contents,
    resolve_import_path,
)
from patchwarden_core.diff import parse_pr_files

SHA = "a" * 40


def changed(*paths, status="modified"):
    return parse_pr_files([{"filename": p, "status": status, "patch": "@@ -1 +1 @@\n-a\n+b"} for p in paths])


def _make_content(text: str):
    content = MagicMock()
    content.decoded_content = text.encode()
    return content


def _repo(files: dict):
    """A repo mock whose get_contents serves ``files`` and 404s everything else."""
    repo = MagicMock()

    def get_contents(path, ref=None):
        if path not in files:
            raise GithubException(404, "Not Found")
        return _make_content(files[path])

    repo.get_contents.side_effect = get_contents
    return repo


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def test_estimate_tokens_rounds_up():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


@pytest.mark.parametrize(
    "path,language",
    [("a.ts", "typescript"), ("a.PY", "python"), ("main.go", "go"), ("x.toml", "toml"), ("Makefile", "unknown")],
)
def test_detect_language(path, language):
    assert detect_language(path) == language


class TestExtractImports:
    def test_js_relative_only(self):
        src = "import x from './x'\nimport React from 'react'\nconst y = require('../y')\n"
        assert extract_imports(src, "typescript") == ["./x", "../y"]

    def test_python_relative_only(self):
        src = "from .models import A\nfrom os import path\nimport sys\nfrom ..util import b\n"
        assert extract_imports(src, "python") == [".models", "..util"]

    def test_go_single_and_grouped(self):
        src = 'import "fmt"\n\nimport (\n\t"example.com/app/dal"\n\tlog "example.com/app/log"\n)\n'
        assert extract_imports(src, "go") == ["fmt", "example.com/app/dal", "example.com/app/log"]

    def test_unknown_language(self):
        assert extract_imports("import x", "ruby") == []


class TestResolveImportPath:
    def test_typescript_candidates(self):
        candidates = resolve_import_path("../lib/db", "src/services/user.ts", "typescript")
        assert candidates[0] == "src/lib/db.ts"
        assert "src/lib/db/index.ts" in candidates

    def test_python_same_package(self):
        assert resolve_import_path(".models", "app/services/user.py", "python") == [
            "app/services/models.py",
            "app/services/models/__init__.py",
        ]

    def test_python_parent_package(self):
        assert resolve_import_path("..util.text", "app/services/user.py", "python")[0] == "app/util/text.py"

    def test_escaping_the_root_yields_nothing(self):
        assert resolve_import_path("../../x", "src/a.ts", "typescript") == []
        assert resolve_import_path("../..", "src/a.ts", "typescript") == []


# ---------------------------------------------------------------------------
# gather_file_contents
# ---------------------------------------------------------------------------


class TestGatherFileContents:
    def test_fetches_changed_files_at_head_sha(self):
        repo = _repo({"src/a.py": "x = 1\n"})
        ctx = gather_file_contents(repo, changed("src/a.py"), SHA, budget=1000)
        assert [(f.path, f.language) for f in ctx.changed_files] == [("src/a.py", "python")]
        repo.get_contents.assert_called_with("src/a.py", ref=SHA)

    def test_removed_files_not_fetched(self):
        repo = _repo({"src/a.py": "x"})
        ctx = gather_file_contents(repo, changed("src/a.py", status="removed"), SHA, budget=1000)
        assert ctx.changed_files == []
        repo.get_contents.assert_not_called()

    def test_missing_file_skipped(self):
        ctx = gather_file_contents(_repo({}), changed("src/gone.py"), SHA, budget=1000)
        assert ctx.all_files == []

    def test_directory_result_skipped(self):
        repo = MagicMock()
        repo.get_contents.return_value = [MagicMock(), MagicMock()]
        ctx = gather_file_contents(repo, changed("src/pkg"), SHA, budget=1000)
        assert ctx.changed_files == []

    def test_imports_follow_changed_files(self):
        repo = _repo(
            {
                "app/services/user.py": "from .models import User\n",
                "app/services/models.py": "class User: ...\n",
            }
        )
        ctx = gather_file_contents(repo, changed("app/services/user.py"), SHA, budget=1000)
        assert [f.path for f in ctx.imported_files] == ["app/services/models.py"]
        assert ctx.total_token_estimate == estimate_tokens("from .models import User\n") + estimate_tokens(
            "class User: ...\n"
        )

    def test_changed_import_not_fetched_twice(self):
        repo = _repo({"src/a.ts": "import b from './b'\n", "src/b.ts": "export default 1\n"})
        ctx = gather_file_contents(repo, changed("src/a.ts", "src/b.ts"), SHA, budget=1000)
        assert [f.path for f in ctx.changed_files] == ["src/a.ts", "src/b.ts"]
        assert ctx.imported_files == []

    def test_budget_skips_large_files(self):
        repo = _repo({"big.py": "x" * 400, "small.py": "y" * 8})
        ctx = gather_file_contents(repo, changed("big.py", "small.py"), SHA, budget=10)
        assert [f.path for f in ctx.changed_files] == ["small.py"]
        assert ctx.total_token_estimate == 2


# ---------------------------------------------------------------------------
# read_local_contents
# ---------------------------------------------------------------------------


class TestReadLocalContents:
    def test_reads_from_root(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "a.go").write_text('import "fmt"\n')
        ctx = read_local_contents(changed("src/a.go"), tmp_path, budget=1000)
        assert ctx.changed_files[0].content == 'import "fmt"\n'
        assert ctx.changed_files[0].language == "go"

    def test_missing_file_skipped(self, tmp_path):
        assert read_local_contents(changed("nope.py"), tmp_path, budget=1000).changed_files == []

    def test_relative_import_resolved(self, tmp_path):
        (tmp_path / "web").mkdir()
        (tmp_path / "web" / "app.ts").write_text("import { db } from './db'\n")
        (tmp_path / "web" / "db").mkdir()
        (tmp_path / "web" / "db" / "index.ts").write_text("export const db = 1\n")
        ctx = read_local_contents(changed("web/app.ts"), str(tmp_path), budget=1000)
        assert [f.path for f in ctx.imported_files] == ["web/db/index.ts"]

    def test_import_outside_root_not_read(self, tmp_path):
        root = tmp_path / "repo"
        (root / "web").mkdir(parents=True)
        (root / "web" / "app.ts").write_text("import { key } from '../../secret'\n")
        (tmp_path / "secret.ts").write_text("export const key = 1\n")
        ctx = read_local_contents(changed("web/app.ts"), root, budget=1000)
        assert [f.path for f in ctx.changed_files] == ["web/app.ts"]
        assert ctx.imported_files == []
