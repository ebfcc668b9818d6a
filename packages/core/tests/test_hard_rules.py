"""Tests for deterministic hard-rule evaluation."""

import logging

from patchwarden_core.diff import parse_pr_files
from patchwarden_core.models import AllowlistEntry, FileContent, HardRule, PolicyBundle
from patchwarden_core.policy.hard_rules import apply_hard_rules
from patchwarden_core.router import route_diff

PATCH = "@@ -1,2 +1,4 @@\n import x\n+const a = 1\n+console.log(\"x\")\n done()"


def routed(path="src/app.ts", patch=PATCH):
    changed = parse_pr_files([{"filename": path, "status": "modified", "patch": patch}])
    return route_diff(changed).by_specialist["security"]


def rule(**overrides):
    values = dict(
        id="no-console",
        description="No console logging",
        scope="**/*.ts",
        pattern=r"console\.log",
    )
    values.update(overrides)
    return HardRule(**values)


def policy(*rules, allowlist=()):
    return PolicyBundle(hard_rules=tuple(rules), allowlist=tuple(allowlist))


class TestForbidRegex:
    def test_added_line_match_yields_one_finding(self):
        findings = apply_hard_rules("security", routed(), {}, policy(rule()))
        assert len(findings) == 1
        finding = findings[0]
        assert finding.rule_id == "no-console"
        assert finding.line == 3
        assert finding.severity == "critical"
        assert finding.category == "security"
        assert finding.agent == "security-agent"
        assert finding.evidence == r"console\.log"

    def test_message_used_as_explanation(self):
        findings = apply_hard_rules("security", routed(), {}, policy(rule(message="Use the logger.")))
        assert findings[0].explanation == "Use the logger."
        assert findings[0].title == "No console logging"

    def test_default_explanation(self):
        findings = apply_hard_rules("security", routed(), {}, policy(rule()))
        assert findings[0].explanation == "Hard rule violated: no-console"

    def test_no_match_no_finding(self):
        findings = apply_hard_rules("security", routed(), {}, policy(rule(pattern=r"eval\(")))
        assert findings == []

    def test_removed_lines_not_checked(self):
        patch = "@@ -1,2 +1,1 @@\n a\n-console.log(1)"
        findings = apply_hard_rules("security", routed(patch=patch), {}, policy(rule()))
        assert findings == []

    def test_brace_scope_matches(self):
        changed = parse_pr_files(
            [{"filename": "src/app.ts", "status": "added", "patch": "@@ -0,0 +1,1 @@\n+console.log(1)"}]
        )
        files = route_diff(changed).by_specialist["logging-error"]
        scoped = rule(scope="src/**/*.{ts,js}", category="logging-error")

        findings = apply_hard_rules("logging-error", files, {}, policy(scoped))

        assert [f.rule_id for f in findings] == ["no-console"]
        assert findings[0].file == "src/app.ts"

    def test_one_finding_per_rule_per_file(self):
        patch = "@@ -1 +1,3 @@\n a\n+console.log(1)\n+console.log(2)"
        findings = apply_hard_rules("security", routed(patch=patch), {}, policy(rule()))
        assert [f.line for f in findings] == [2]


class TestRequireRegex:
    def test_missing_pattern_is_violation_on_first_added_line(self):
        findings = apply_hard_rules(
            "security", routed(), {}, policy(rule(id="needs-strict", pattern="use strict", mode="require_regex"))
        )
        assert len(findings) == 1
        assert findings[0].line == 2

    def test_present_pattern_no_violation(self):
        findings = apply_hard_rules(
            "security", routed(), {}, policy(rule(pattern=r"const a", mode="require_regex"))
        )
        assert findings == []

    def test_no_added_lines_defaults_to_line_one(self):
        patch = "@@ -1,2 +1,1 @@\n a\n-b"
        findings = apply_hard_rules(
            "security", routed(patch=patch), {}, policy(rule(pattern="x", mode="require_regex"))
        )
        assert findings[0].line == 1


class TestFileContentTarget:
    def test_locates_first_matching_line_in_file(self):
        contents = {"src/app.ts": FileContent("src/app.ts", "import x\n\nlet y = eval(z)\n", "typescript")}
        findings = apply_hard_rules(
            "security", routed(), contents, policy(rule(pattern=r"eval\(", target="file_content"))
        )
        assert findings[0].line == 3

    def test_missing_content_is_empty_text(self):
        findings = apply_hard_rules(
            "security", routed(), {}, policy(rule(pattern="license", target="file_content", mode="require_regex"))
        )
        assert len(findings) == 1
        assert findings[0].line == 1

    def test_multiline_anchors(self):
        contents = {"src/app.ts": FileContent("src/app.ts", "a\nb\ndebugger\n", "typescript")}
        findings = apply_hard_rules(
            "security", routed(), contents, policy(rule(pattern=r"^debugger$", target="file_content"))
        )
        assert findings[0].line == 3


class TestSelection:
    def test_category_must_match_specialist_or_any(self):
        files = routed()
        assert apply_hard_rules("security", files, {}, policy(rule(category="reliability"))) == []
        assert len(apply_hard_rules("reliability", files, {}, policy(rule(category="reliability")))) == 1

    def test_scope_must_match(self):
        assert apply_hard_rules("security", routed(), {}, policy(rule(scope="**/*.py"))) == []

    def test_allowlisted_path_and_rule_skipped(self):
        bundle = policy(rule(), allowlist=[AllowlistEntry(path="src/**", rule_ids=("no-console",))])
        assert apply_hard_rules("security", routed(), {}, bundle) == []

    def test_allowlist_for_other_rule_does_not_apply(self):
        bundle = policy(rule(), allowlist=[AllowlistEntry(path="src/**", rule_ids=("other",))])
        assert len(apply_hard_rules("security", routed(), {}, bundle)) == 1

    def test_invalid_pattern_skipped_with_warning(self, caplog):
        bad = rule(id="broken", pattern="(unclosed")
        with caplog.at_level(logging.WARNING):
            findings = apply_hard_rules("security", routed(), {}, policy(bad, rule()))
        assert [f.rule_id for f in findings] == ["no-console"]
        assert "broken" in caplog.text
