from __future__ import annotations

import logging

from github import Github, GithubException

from patchwarden_core.models import ReviewOutput
from patchwarden_core.review import REVIEW_SIGNATURE

logger = logging.getLogger(__name__)


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state)


def get_pr_files(pr) -> list[dict]:
    """Return the PR's changed files as plain ``{filename, status, patch}`` records."""
    return [{"filename": f.filename, "status": f.status, "patch": f.patch} for f in pr.get_files()]


def get_review_comments(pr) -> list[dict]:
    """Return the PR's review comments as ``{path, line, body}`` records."""
    comments = []
    for c in pr.get_review_comments():
        # c.line is None once the commented line left the diff; fall back to original_line.
        line = c.line if c.line is not None else getattr(c, "original_line", None)
        comments.append({"path": c.path, "line": line, "body": c.body or ""})
    return comments


def find_existing_review(pr):
    """Return the most recent review posted by patchwarden on this PR, or None."""
    existing = None
    for review in pr.get_reviews():
        if REVIEW_SIGNATURE in (review.body or ""):
            existing = review
    return existing


def post_review(pr, review: ReviewOutput) -> None:
    """Post ``review`` on ``pr``, dismissing a previous patchwarden review first."""
    previous = find_existing_review(pr)
    if previous is not None and previous.state in ("APPROVED", "CHANGES_REQUESTED"):
        try:
            previous.dismiss("Superseded by an updated patchwarden review.")
        except GithubException as e:
            logger.warning("Could not dismiss previous review %s: %s", previous.id, e)

    pr.create_review(
        body=review.body,
        event=review.event,
        comments=[{"path": c.path, "position": c.position, "body": c.body} for c in review.comments],
    )
