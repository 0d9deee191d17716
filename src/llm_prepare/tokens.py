"""Model-agnostic token estimate.

The estimate is an approximation, not a tokenizer: about 1.3 tokens per word,
plus half a token per punctuation mark and per digit run.
"""

from __future__ import annotations

import math
import re

from pydantic import BaseModel, ConfigDict, Field

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_NUMBER_RE = re.compile(r"\d+")


def count_punctuation(text: str) -> int:
    """Count characters that are neither word characters nor whitespace."""
    return len(_PUNCTUATION_RE.findall(text))


def count_numbers(text: str) -> int:
    """Count runs of digits."""
    return len(_NUMBER_RE.findall(text))


def token_formula(words: int, punctuation: int, numbers: int) -> int:
    """Apply the estimate formula to raw counts.

    `ceil(words * 1.3) + 0.5 * punctuation + 0.5 * numbers`, rounded half up,
    never below 1.

    Args:
        words (int): whitespace separated words
        punctuation (int): punctuation characters
        numbers (int): digit runs

    Returns:
        int: estimated token count
    """
    word_tokens = math.ceil(words * 13 / 10)
    # half-up rounding of word_tokens + (punctuation + numbers) / 2, in integers
    return max(1, (2 * word_tokens + punctuation + numbers + 1) // 2)


def estimate_tokens(text: str) -> int:
    """Estimate how many tokens a text costs.

    Args:
        text (str): the text to estimate

    Returns:
        int: 0 for empty text, otherwise at least 1
    """
    if not text:
        return 0
    return token_formula(len(text.split()), count_punctuation(text), count_numbers(text))


class SectionTokens(BaseModel):
    """Token statistics for one contiguous group of lines."""

    model_config = ConfigDict(frozen=True)

    section: int
    lines: int
    chars: int
    tokens: int
    density: float = Field(..., description="Tokens per character")


class TokenDistribution(BaseModel):
    """How tokens are spread over a text, section by section."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    sections: list[SectionTokens] = Field(default_factory=list)


def token_distribution(text: str, sections: int = 5) -> TokenDistribution:
    """Split a text into up to `sections` groups of lines and estimate each.

    Args:
        text (str): the text to analyze
        sections (int): maximum number of sections

    Returns:
        TokenDistribution: per-section counts and their total
    """
    if not text:
        return TokenDistribution()
    lines = text.split("\n")
    size = max(1, math.ceil(len(lines) / max(1, sections)))
    out: list[SectionTokens] = []
    for number, start in enumerate(range(0, len(lines), size)):
        block = "\n".join(lines[start : start + size]) + "\n"
        tokens = estimate_tokens(block)
        out.append(
            SectionTokens(
                section=number,
                lines=len(lines[start : start + size]),
                chars=len(block),
                tokens=tokens,
                density=tokens / len(block),
            ),
        )
    return TokenDistribution(total=sum(s.tokens for s in out), sections=out)
