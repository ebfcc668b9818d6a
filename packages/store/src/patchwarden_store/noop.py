"""No-op store: nothing is loaded and nothing is kept."""

from __future__ import annotations

from patchwarden_store.base import BaseStore


class NoOpStore(BaseStore):
    """Used when ``store: noop`` is configured or a backend cannot be built.

    Reviews still run; they just see no learned rules and no snapshot.
    """

    def load_learned_rules(self) -> list[dict]:
        return []

    def save_learned_rules(self, rules: list[dict]) -> None:
        pass

    def load_snapshot(self) -> dict | None:
        return None

    def save_snapshot(self, snapshot: dict) -> None:
        pass
