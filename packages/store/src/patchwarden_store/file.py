"""FileStore: learned rules and snapshot as JSON files in the repository.

Committing both files lets every CI run and every developer see the same
policy. The learned-rules file wraps the rules in a small envelope:

    {"version": 1, "rules": [...], "last_updated": "<iso timestamp>"}

The snapshot file is the snapshot document itself.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from patchwarden_store.base import LEARNED_RULES_VERSION, BaseStore

logger = logging.getLogger(__name__)


class FileStore(BaseStore):
    def __init__(
        self,
        learned_rules_path: str | Path = ".patchwarden-learned.json",
        policy_path: str | Path = ".patchwarden-policy.json",
    ):
        self._learned_path = Path(learned_rules_path)
        self._policy_path = Path(policy_path)

    def load_learned_rules(self) -> list[dict]:
        data = self._read(self._learned_path)
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
        self._write(self._learned_path, document)

    def load_snapshot(self) -> dict | None:
        data = self._read(self._policy_path)
        return data if isinstance(data, dict) else None

    def save_snapshot(self, snapshot: dict) -> None:
        self._write(self._policy_path, snapshot)

    @staticmethod
    def _read(path: Path):
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read %s: %s", path, e)
            return None

    @staticmethod
    def _write(path: Path, document: dict) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            logger.warning("Could not write %s: %s", path, e)
