"""Trim a text stream to a token budget, keeping the start, the end, or both ends."""

from __future__ import annotations

import numbers
import re
from enum import StrEnum, auto

from llm_prepare.exceptions import InvalidParameterError
from llm_prepare.logging import logger
from llm_prepare.tokens import count_numbers, count_punctuation, estimate_tokens, token_formula

END_INDICATOR = "\n\n[...Content truncated from end...]"
START_INDICATOR = "[...Content truncated from beginning...]\n\n"
MIDDLE_INDICATOR = "\n\n[...Content truncated from middle...]\n\n"

_WORD_RE = re.compile(r"\S+")


class TruncationStrategy(StrEnum):
    """Which part of the text is dropped."""

    START = auto()
    END = auto()
    MIDDLE = auto()


def parse_strategy(strategy: str | TruncationStrategy) -> TruncationStrategy:
    """Validate a truncation strategy name.

    Args:
        strategy (str | TruncationStrategy): "start", "end" or "middle"

    Raises:
        InvalidParameterError: for any other value

    Returns:
        TruncationStrategy: the parsed strategy
    """
    try:
        return TruncationStrategy(strategy)
    except ValueError as e:
        raise InvalidParameterError(
            parameter="truncate",
            value=strategy,
            message="invalid truncation strategy (expected start, end or middle)",
        ) from e


def validate_max_tokens(max_tokens: object) -> int:
    """Reject budgets that are not positive integers.

    Args:
        max_tokens (object): the requested budget

    Raises:
        InvalidParameterError: when the budget is not an integer or is not positive

    Returns:
        int: the budget
    """
    if isinstance(max_tokens, bool) or not isinstance(max_tokens, numbers.Integral):
        raise InvalidParameterError(parameter="max_tokens", value=max_tokens, message="max tokens must be an integer")
    if max_tokens <= 0:
        raise InvalidParameterError(parameter="max_tokens", value=max_tokens, message="max tokens must be positive")
    return int(max_tokens)


def _line_cost(line: str) -> int:
    return estimate_tokens(line + "\n")


def _take_head(lines: list[str], budget: int) -> list[str]:
    kept: list[str] = []
    used = 0
    for line in lines:
        cost = _line_cost(line)
        if used + cost > budget:
            break
        kept.append(line)
        used += cost
    return kept


def _take_tail(lines: list[str], budget: int) -> list[str]:
    kept: list[str] = []
    used = 0
    for line in reversed(lines):
        cost = _line_cost(line)
        if used + cost > budget:
            break
        kept.append(line)
        used += cost
    kept.reverse()
    return kept


def _fit_words(line: str, budget: int, *, from_end: bool = False) -> str:
    """Keep whole words of a single line that is too large to keep entirely.

    The first word is always kept so that some content survives.
    """
    matches = list(_WORD_RE.finditer(line))
    if from_end:
        matches.reverse()
    words = punct = nums = 0
    cut: re.Match[str] | None = None
    for match in matches:
        chunk = match.group()
        words += 1
        punct += count_punctuation(chunk)
        nums += count_numbers(chunk)
        if cut is not None and token_formula(words, punct, nums) > budget:
            break
        cut = match
    if cut is None:
        return line
    return line[cut.start() :] if from_end else line[: cut.end()]


def _content_budget(max_tokens: int, indicator: str) -> int:
    budget = max_tokens - estimate_tokens(indicator)
    # the indicator alone exhausts the budget: it becomes overhead
    return budget if budget > 0 else max_tokens


def truncate_from_end(text: str, max_tokens: int) -> str:
    """Keep the beginning of the text, line by line."""
    budget = _content_budget(max_tokens, END_INDICATOR)
    lines = text.split("\n")
    kept = _take_head(lines, budget)
    body = "\n".join(kept) if kept else _fit_words(lines[0], budget)
    return body + END_INDICATOR


def truncate_from_start(text: str, max_tokens: int) -> str:
    """Keep the end of the text, line by line."""
    budget = _content_budget(max_tokens, START_INDICATOR)
    lines = text.split("\n")
    kept = _take_tail(lines, budget)
    body = "\n".join(kept) if kept else _fit_words(lines[-1], budget, from_end=True)
    return START_INDICATOR + body


def truncate_from_middle(text: str, max_tokens: int) -> str:
    """Keep a prefix and a suffix of roughly equal token cost."""
    indicator_tokens = estimate_tokens(MIDDLE_INDICATOR)
    if max_tokens <= indicator_tokens:
        return truncate_from_end(text, max_tokens)
    target = max_tokens - indicator_tokens
    head_budget = target // 2
    lines = text.split("\n")
    head = _take_head(lines, head_budget)
    tail = _take_tail(lines[len(head) :], target - head_budget)
    if not head and not tail:
        return truncate_from_end(text, max_tokens)
    return "\n".join(head) + MIDDLE_INDICATOR + "\n".join(tail)


_STRATEGIES = {
    TruncationStrategy.START: truncate_from_start,
    TruncationStrategy.END: truncate_from_end,
    TruncationStrategy.MIDDLE: truncate_from_middle,
}


def truncate_text(
    text: str,
    max_tokens: int,
    strategy: str | TruncationStrategy = TruncationStrategy.END,
) -> str:
    """Trim `text` so that its estimated token count fits `max_tokens`.

    Arguments are validated before the text is looked at. Text already within
    budget is returned unchanged. Otherwise whole lines are dropped from the
    start, the end or the middle and a visible indicator marks the cut. When
    not even one line fits, the boundary line is cut on word boundaries.

    Args:
        text (str): the text to trim
        max_tokens (int): positive token budget
        strategy (str | TruncationStrategy): "start", "end" (default) or "middle"

    Returns:
        str: the text, possibly truncated
    """
    parsed = parse_strategy(strategy)
    budget = validate_max_tokens(max_tokens)
    if not text:
        return text
    current = estimate_tokens(text)
    if current <= budget:
        return text
    logger.info("truncating", strategy=parsed.value, estimated_tokens=current, max_tokens=budget)
    return _STRATEGIES[parsed](text, budget)
