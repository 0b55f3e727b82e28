"""
Token counting heuristics.

Estimates token counts from text length where no tokenizer output is available.
"""

import math
from dataclasses import dataclass

# Rough average for English text; actual tokenization varies by model.
CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class TokenUsage:
    """Prompt/completion token split for one summary or model bucket."""
    prompt_tokens: int
    completion_tokens: int

    @property
    def total_tokens(self) -> int:
        """Total tokens used (prompt + completion)."""
        return self.prompt_tokens + self.completion_tokens


def estimate_tokens(text: str, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Estimate the token count of ``text`` as ``ceil(len / chars_per_token)``.

    An approximation, not a tokenizer. Empty text is 0 tokens.
    """
    if not text:
        return 0
    return math.ceil(len(text) / chars_per_token)
