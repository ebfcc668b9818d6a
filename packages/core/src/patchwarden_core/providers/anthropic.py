from __future__ import annotations

from patchwarden_core.models import TokenUsage
from patchwarden_core.providers.base import BaseProvider, Completion


class AnthropicProvider(BaseProvider):
    MODEL = "claude-sonnet-4-20250514"
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model: str | None = None):
        super().__init__(model)
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'patchwarden[anthropic]'"
            )
        self.client = Anthropic(api_key=api_key)

    def _call_api(self, system_prompt: str, user_prompt: str) -> Completion:
        # anthropic is optional; __init__ already checked it is installed.
        from anthropic.types import TextBlock

        response = self.client.messages.create(
            model=self.MODEL,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        usage = TokenUsage(response.usage.input_tokens, response.usage.output_tokens)
        return Completion("".join(text_blocks).strip(), usage)
