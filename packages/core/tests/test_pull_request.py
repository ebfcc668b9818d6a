"""Tests for GitHub pull request helper functions."""

from unittest.mock import MagicMock

from github import GithubException

from patchwarden_core.gh.pull_request import (
    find_existing_review,
    get_pr_files,
    get_review_comments,
    post_review,
)
from patchwarden_core.models import InlineComment, ReviewOutput
from patchwarden_core.review import REVIEW_SIGNATURE


def _review(body, state="COMMENTED", review_id=1):
    r = MagicMock()
    r.body = body
    r.state = state
    r.id = review_id
    return r


def _output(event="COMMENT"):
    return ReviewOutput(
        body=f"{REVIEW_SIGNATURE}\n## Review summary",
        comments=(InlineComment(path="src/a.py", position=3, body="**[WARNING]** x"),),
        event=event,
    )


class TestGetPrFiles:
    def test_returns_plain_records(self):
        f = MagicMock()
        f.filename = "src/a.py"
        f.status = "added"
        f.patch = "@@ -0,0 +1 @@\n+x"
        pr = MagicMock()
        pr.get_files.return_value = [f]
        assert get_pr_files(pr) == [{"filename": "src/a.py", "status": "added", "patch": "@@ -0,0 +1 @@\n+x"}]

    def test_binary_file_has_no_patch(self):
        f = MagicMock()
        f.filename = "logo.png"
        f.status = "added"
        f.patch = None
        pr = MagicMock()
        pr.get_files.return_value = [f]
        assert get_pr_files(pr)[0]["patch"] is None


class TestGetReviewComments:
    def test_uses_line(self):
        c = MagicMock()
        c.path = "a.py"
        c.line = 4
        c.body = "use the logger"
        pr = MagicMock()
        pr.get_review_comments.return_value = [c]
        assert get_review_comments(pr) == [{"path": "a.py", "line": 4, "body": "use the logger"}]

    def test_falls_back_to_original_line(self):
        c = MagicMock()
        c.path = "a.py"
        c.line = None
        c.original_line = 9
        c.body = None
        pr = MagicMock()
        pr.get_review_comments.return_value = [c]
        assert get_review_comments(pr) == [{"path": "a.py", "line": 9, "body": ""}]


class TestFindExistingReview:
    def test_none_without_reviews(self):
        pr = MagicMock()
        pr.get_reviews.return_value = []
        assert find_existing_review(pr) is None

    def test_ignores_foreign_reviews(self):
        pr = MagicMock()
        pr.get_reviews.return_value = [_review("LGTM!"), _review(None)]
        assert find_existing_review(pr) is None

    def test_returns_most_recent_signed_review(self):
        older = _review(f"{REVIEW_SIGNATURE}\nold", review_id=1)
        newer = _review(f"{REVIEW_SIGNATURE}\nnew", review_id=2)
        pr = MagicMock()
        pr.get_reviews.return_value = [older, _review("human"), newer]
        assert find_existing_review(pr) is newer


class TestPostReview:
    def test_creates_review_with_positions(self):
        pr = MagicMock()
        pr.get_reviews.return_value = []
        post_review(pr, _output("REQUEST_CHANGES"))
        pr.create_review.assert_called_once_with(
            body=f"{REVIEW_SIGNATURE}\n## Review summary",
            event="REQUEST_CHANGES",
            comments=[{"path": "src/a.py", "position": 3, "body": "**[WARNING]** x"}],
        )

    def test_dismisses_previous_blocking_review(self):
        previous = _review(f"{REVIEW_SIGNATURE}\nold", state="CHANGES_REQUESTED")
        pr = MagicMock()
        pr.get_reviews.return_value = [previous]
        post_review(pr, _output())
        previous.dismiss.assert_called_once()
        pr.create_review.assert_called_once()

    def test_previous_comment_review_not_dismissed(self):
        previous = _review(f"{REVIEW_SIGNATURE}\nold", state="COMMENTED")
        pr = MagicMock()
        pr.get_reviews.return_value = [previous]
        post_review(pr, _output())
        previous.dismiss.assert_not_called()

    def test_dismiss_failure_does_not_block_posting(self):
        previous = _review(f"{REVIEW_SIGNATURE}\nold", state="APPROVED")
        previous.dismiss.side_effect = GithubException(403, "Forbidden")
        pr = MagicMock()
        pr.get_reviews.return_value = [previous]
        post_review(pr, _output())
        pr.create_review.assert_called_once()
