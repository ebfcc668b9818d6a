"""Abstract store interface.

A store keeps the two documents that outlive a single run: the learned
rules mined from merged PRs and the policy snapshot. The CLI depends on
BaseStore, not on a concrete backend, so backends are swappable without
touching CLI code.

Stores deal in plain JSON-compatible dicts; ``patchwarden_core.policy.load``
owns their meaning.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

LEARNED_RULES_VERSION = 1


class BaseStore(ABC):
    """Pluggable persistence for learned rules and the policy snapshot.

    Implementations must be safe to call from CI, where no interactive
    credentials exist: all auth happens through constructor arguments.
    """

    @abstractmethod
    def load_learned_rules(self) -> list[dict]:
        """Return the stored learned-rule dicts. Never raises; [] when nothing is stored."""

    @abstractmethod
    def save_learned_rules(self, rules: list[dict]) -> None:
        """Replace the stored learned rules."""

    @abstractmethod
    def load_snapshot(self) -> dict | None:
        """Return the stored policy snapshot document, or None."""

    @abstractmethod
    def save_snapshot(self, snapshot: dict) -> None:
        """Replace the stored policy snapshot."""

    def close(self) -> None:
        """Release any resources held by the store. Default is a no-op."""
