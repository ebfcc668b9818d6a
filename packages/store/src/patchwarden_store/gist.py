"""GistStore: learned rules and snapshot shared through a GitHub Gist.

Useful when several repositories share one policy, or when the CI token
may not push to the repository. The Gist holds two files:
``patchwarden_learned.json`` (the learned-rules envelope) and
``patchwarden_policy.json`` (the snapshot document).
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone

from github import Github, InputFileContent

from patchwarden_store.base import LEARNED_RULES_VERSION, BaseStore

logger = logging.getLogger(__name__)

_LEARNED_FILENAME = "patchwarden_learned.json"
_POLICY_FILENAME = "patchwarden_policy.json"


class GistStore(BaseStore):
    """Reads and rewrites whole files in a Gist; failures never abort the caller.

    The Gist ID lives in .patchwarden.yml under ``gist_id``; ``patchwarden
    init`` asks for it and writes it there.
    """

    def __init__(self, gist_id: str, token: str):
        self._gist_id = gist_id
        self._gh = Github(token)

    def _get_gist(self):
        return self._gh.get_gist(self._gist_id)

    def load_learned_rules(self) -> list[dict]:
        data = self._read(_LEARNED_FILENAME)
        if not isinstance(data, dict):
            return []
        rules = data.get("rules")
        return rules if isinstance(rules, list) else []

    def save_learned_rules(self, rules: list[dict]) -> None:
        document = {
            "version": LEARNED_RULES_VERSION,
            "rules": rules,
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }
        self._write(_LEARNED_FILENAME, document)

    def load_snapshot(self) -> dict | None:
        data = self._read(_POLICY_FILENAME)
        return data if isinstance(data, dict) else None

    def save_snapshot(self, snapshot: dict) -> None:
        self._write(_POLICY_FILENAME, snapshot)

    def _read(self, filename: str):
        try:
            gist = self._get_gist()
        except Exception as e:
            logger.warning("GistStore could not load gist %s: %s", self._gist_id, e)
            return None
        file_obj = gist.files.get(filename)
        if file_obj is None:
            return None
        try:
            return json.loads(file_obj.content)
        except (json.JSONDecodeError, TypeError, AttributeError):
            logger.warning("GistStore: %s is not valid JSON", filename)
            return None

    def _write(self, filename: str, document: dict) -> None:
        try:
            gist = self._get_gist()
            gist.edit(files={filename: InputFileContent(json.dumps(document, indent=2))})
        except Exception as e:
            # The review itself already happened; losing the write is only a warning.
            logger.warning("GistStore write of %s failed (%s): %s", filename, type(e).__name__, e)
            msg = f"Warning: could not persist {filename} to Gist ({type(e).__name__}: {e})"
            if os.environ.get("GITHUB_ACTIONS") == "true":
                msg += (
                    "\nThe built-in GITHUB_TOKEN does not have Gist permissions. "
                    "Use a PAT with 'gist' scope stored as a repository secret."
                )
            print(msg)
