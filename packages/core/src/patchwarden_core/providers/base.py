"""Base LLM provider implementing the Template Method pattern.

Every provider shares the same call algorithm:
    complete() -> _call_with_retry() -> _call_api()   <- only this differs per provider

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return a Completion

Prompt construction lives with the callers (``patchwarden_core.semantic`` and
``patchwarden_core.miner``); response parsing and retries live here.
"""

from __future__ import annotations

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from patchwarden_core.models import TokenUsage

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_MAX_TOKENS = 4096
_OUTER_FENCE = re.compile(r"\A```(?:json)?\s*|\s*```\Z")


@dataclass(frozen=True)
class Completion:
    text: str
    usage: TokenUsage = field(default_factory=TokenUsage)


class BaseProvider(ABC):
    MAX_RETRIES: int = _MAX_RETRIES
    MAX_TOKENS: int = _MAX_TOKENS
    MODEL: str = ""

    def __init__(self, model: str | None = None):
        if model:
            self.MODEL = model

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def complete(self, system_prompt: str, user_prompt: str) -> Completion | None:
        """Return the model's completion, or None once every retry has failed."""
        return self._call_with_retry(system_prompt, user_prompt)

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                 #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> Completion:
        """Make a single API call. Raise on failure; _call_with_retry handles retries."""

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, system_prompt: str, user_prompt: str) -> Completion | None:
        """Call _call_api up to MAX_RETRIES times, sleeping 1s, 2s, 4s... between attempts."""
        name = type(self).__name__
        for attempt in range(1, self.MAX_RETRIES + 1):
            try:
                return self._call_api(system_prompt, user_prompt)
            except Exception as e:
                if attempt == self.MAX_RETRIES:
                    logger.error("%s: giving up after %d attempt(s): %s", name, attempt, e)
                    break
                delay = 2 ** (attempt - 1)
                logger.warning("%s: attempt %d/%d failed (%s); retrying in %ds", name, attempt, self.MAX_RETRIES, e, delay)
                time.sleep(delay)
        return None

    def parse_json(self, raw: str):
        """Decode the model's JSON answer, or return None when it is not JSON.

        Only the fence around the whole answer is removed; fenced code inside
        string values stays as it is.
        """
        body = _OUTER_FENCE.sub("", raw.strip())
        try:
            return json.loads(body)
        except json.JSONDecodeError:
            logger.warning("%s: response is not valid JSON: %.200s", type(self).__name__, raw)
            return None
