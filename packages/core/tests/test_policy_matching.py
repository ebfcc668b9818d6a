"""Tests for glob matching, allowlists and soft-rule scoping."""

import pytest

from patchwarden_core.diff import parse_pr_files
from patchwarden_core.models import AllowlistEntry, PolicyBundle, Rule
from patchwarden_core.policy.matching import get_active_rules, is_allowlisted, match_glob, match_rules_to_files


@pytest.mark.parametrize(
    "path,pattern,expected",
    [
        ("src/app.py", "src/*.py", True),
        ("src/pkg/app.py", "src/*.py", False),
        ("src/pkg/app.py", "src/**/*.py", True),
        ("src/app.py", "src/**/*.py", True),
        ("app.py", "**/*.py", True),
        ("a/b/c/app.py", "**/*.py", True),
        ("src/anything/deep/x.ts", "src/**", True),
        ("lib/x.ts", "src/**", False),
        ("src/a1.py", "src/a?.py", True),
        ("src/a12.py", "src/a?.py", False),
        ("src/a.py", "src/[ab].py", True),
        ("src/c.py", "src/[!ab].py", True),
        ("yarn.lock", "yarn.lock", True),
        ("web/yarn.lock", "yarn.lock", False),
        ("file.min.js", "**/*.min.js", True),
        ("src/a+b.py", "src/a+b.py", True),
        ("src/app.ts", "src/**/*.{ts,js}", True),
        ("src/lib/app.js", "src/**/*.{ts,js}", True),
        ("src/app.py", "src/**/*.{ts,js}", False),
        ("src/app.ts", "src/*.{ts,tsx}", True),
    ],
)
def test_match_glob(path, pattern, expected):
    assert match_glob(path, pattern) is expected


def test_unclosed_bracket_is_literal():
    assert match_glob("src/[x", "src/[x")


class TestIsAllowlisted:
    def _policy(self, *entries):
        return PolicyBundle(allowlist=tuple(entries))

    def test_entry_without_rule_ids_covers_all_rules(self):
        policy = self._policy(AllowlistEntry(path="legacy/**"))
        assert is_allowlisted("legacy/old.py", "any-rule", policy)

    def test_entry_with_rule_ids(self):
        policy = self._policy(AllowlistEntry(path="legacy/**", rule_ids=("no-print",)))
        assert is_allowlisted("legacy/old.py", "no-print", policy)
        assert not is_allowlisted("legacy/old.py", "no-eval", policy)

    def test_path_must_match(self):
        policy = self._policy(AllowlistEntry(path="legacy/**"))
        assert not is_allowlisted("src/new.py", "no-print", policy)

    def test_empty_allowlist(self):
        assert not is_allowlisted("src/new.py", "no-print", PolicyBundle())


def _files(*paths):
    return parse_pr_files([{"filename": p, "status": "modified", "patch": "@@ -1 +1 @@\n-a\n+b"} for p in paths])


def _rule(rule_id, scope):
    return Rule(id=rule_id, description="", scope=scope, pattern="check it")


class TestMatchRulesToFiles:
    def test_groups_rules_by_file(self):
        rules = [_rule("py", "**/*.py"), _rule("svc", "src/services/**")]
        result = match_rules_to_files(rules, _files("src/services/a.py", "web/app.ts"))
        assert list(result) == ["src/services/a.py"]
        assert [r.id for r in result["src/services/a.py"]] == ["py", "svc"]

    def test_no_matches(self):
        assert match_rules_to_files([_rule("py", "**/*.py")], _files("a.ts")) == {}


def test_get_active_rules_deduplicates():
    rules = [_rule("py", "**/*.py"), _rule("ts", "**/*.ts")]
    active = get_active_rules(rules, _files("a.py", "b.py"))
    assert [r.id for r in active] == ["py"]
