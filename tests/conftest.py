"""
Pytest configuration and shared fixtures for testing.
"""
from typing import Callable, List

import numpy as np
import pytest

from iqcat.core.cat.simulation import generate_item_pool
from iqcat.core.config import CATConfig
from iqcat.core.item_bank import Item
from iqcat.domain_types import QuestionCategory


class FakeClock:
    """Manually advanced monotonic clock for timing responses."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def make_item() -> Callable[..., Item]:
    """Factory for calibrated items with sensible defaults."""

    def _make_item(
        item_id: str = "Q001",
        category: QuestionCategory = QuestionCategory.PATTERN_RECOGNITION,
        a: float = 1.0,
        b: float = 0.0,
        c: float = 0.2,
        **kwargs,
    ) -> Item:
        return Item(
            id=item_id,
            category=category,
            discrimination=a,
            difficulty=b,
            guessing=c,
            **kwargs,
        )

    return _make_item


@pytest.fixture
def two_category_pool(make_item) -> List[Item]:
    """Ten items each in two categories, difficulties spread over [-2, 2.5]."""
    pool = []
    for index in range(10):
        b = -2.0 + 0.5 * index
        pool.append(
            make_item(
                f"P{index:02d}", QuestionCategory.PATTERN_RECOGNITION, a=1.2, b=b, correct_option=1
            )
        )
        pool.append(
            make_item(
                f"S{index:02d}", QuestionCategory.SPATIAL_REASONING, a=1.2, b=b, correct_option=1
            )
        )
    return pool


@pytest.fixture
def simulated_pool() -> List[Item]:
    """Deterministic synthetic pool: 20 items in each of the five categories."""
    return generate_item_pool(20, np.random.default_rng(7))


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def long_test_config() -> CATConfig:
    """Config whose SE target is never reached, so only length stops the test."""
    return CATConfig(
        total_questions=6,
        target_standard_error=0.01,
        max_standard_error=0.5,
        random_seed=1,
    )
