from __future__ import annotations

import pytest

from llm_prepare.tokens import estimate_tokens, token_distribution, token_formula
from llm_prepare.truncation import END_INDICATOR, MIDDLE_INDICATOR, START_INDICATOR


@pytest.mark.unit
@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("", 0),
        ("hello", 2),
        ("Hello, world!", 4),
        ("abc 123", 4),
        (".", 3),
        ("word " * 50, 65),
    ],
)
def test_estimate_tokens(text: str, expected: int) -> None:
    assert estimate_tokens(text) == expected


@pytest.mark.unit
def test_token_formula_never_below_one() -> None:
    assert token_formula(0, 0, 0) == 1
    assert token_formula(10, 0, 0) == 13


@pytest.mark.unit
def test_truncation_indicators_cost_ten_tokens() -> None:
    assert estimate_tokens(END_INDICATOR) == 10
    assert estimate_tokens(START_INDICATOR) == 10
    assert estimate_tokens(MIDDLE_INDICATOR) == 10


@pytest.mark.unit
def test_token_distribution_splits_into_sections() -> None:
    report = token_distribution("a\nb\nc\nd\ne\nf", sections=3)

    assert [s.lines for s in report.sections] == [2, 2, 2]
    assert [s.tokens for s in report.sections] == [3, 3, 3]
    assert report.total == 9


@pytest.mark.unit
def test_token_distribution_of_empty_text() -> None:
    report = token_distribution("")

    assert report.total == 0
    assert report.sections == []
