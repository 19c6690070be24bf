"""
Calibrated item model and item pool loading.

Items arrive from the item bank collaborator with 3PL parameters already
calibrated. Pool loading validates every parameter and rejects the pool on
the first out-of-range item: corrupt calibration data must not be silently
clamped into something that looks valid.

Accepted parameter ranges:
    discrimination (a): [0.5, 3.0]
    difficulty (b):     [-3.0, 3.0]
    guessing (c):       [0.0, 0.5]
"""

import logging
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from iqcat.core.exceptions import ItemParameterOutOfRangeError
from iqcat.domain_types import QuestionCategory, TaskType

logger = logging.getLogger(__name__)

DISCRIMINATION_RANGE = (0.5, 3.0)
DIFFICULTY_RANGE = (-3.0, 3.0)
GUESSING_RANGE = (0.0, 0.5)

# Short parameter names used by calibration exports
_PARAMETER_ALIASES = {"a": "discrimination", "b": "difficulty", "c": "guessing"}


@dataclass(frozen=True)
class Item:
    """A calibrated test item.

    Calibration counters are maintained by the calibration collaborator and
    are read-only to the engine.
    """

    id: str
    category: QuestionCategory
    discrimination: float  # a parameter
    difficulty: float  # b parameter
    guessing: float  # c parameter
    time_limit_seconds: float = 60.0
    correct_option: Optional[int] = None
    task_type: TaskType = TaskType.MULTIPLE_CHOICE
    payload: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)
    times_answered: int = 0
    times_correct: int = 0
    average_response_time_ms: float = 0.0


def validate_item(item: Item) -> None:
    """
    Check an item's IRT parameters against the accepted calibration ranges.

    Raises:
        ItemParameterOutOfRangeError: If any parameter is non-finite or out
            of range, or the time limit is not positive.
    """
    checks = (
        ("discrimination", item.discrimination, DISCRIMINATION_RANGE),
        ("difficulty", item.difficulty, DIFFICULTY_RANGE),
        ("guessing", item.guessing, GUESSING_RANGE),
    )
    for name, value, (low, high) in checks:
        if not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ItemParameterOutOfRangeError(
                f"Item {item.id} has non-numeric {name}",
                context={"item_id": item.id, name: value},
            )
        if not (low <= value <= high):
            raise ItemParameterOutOfRangeError(
                f"Item {item.id} {name} out of range [{low}, {high}]",
                context={"item_id": item.id, name: value},
            )
    if item.time_limit_seconds <= 0:
        raise ItemParameterOutOfRangeError(
            f"Item {item.id} time limit must be positive",
            context={"item_id": item.id, "time_limit_seconds": item.time_limit_seconds},
        )


def item_from_record(record: Mapping[str, Any]) -> Item:
    """Build an ``Item`` from an item bank record (dict-like)."""
    data: Dict[str, Any] = {_PARAMETER_ALIASES.get(k, k): v for k, v in record.items()}
    if "id" not in data or "category" not in data:
        raise ItemParameterOutOfRangeError(
            "Item record is missing id or category", context={"record": dict(record)}
        )
    try:
        data["category"] = QuestionCategory(data["category"])
        if "task_type" in data:
            data["task_type"] = TaskType(data["task_type"])
    except ValueError as e:
        raise ItemParameterOutOfRangeError(
            f"Item {data['id']} has an unknown category or task type",
            original_error=e,
            context={"item_id": data["id"]},
        ) from e
    data["id"] = str(data["id"])
    data["payload"] = MappingProxyType(dict(data.get("payload") or {}))
    try:
        return Item(**data)
    except TypeError as e:
        raise ItemParameterOutOfRangeError(
            f"Item {data['id']} record has missing or unexpected fields",
            original_error=e,
            context={"item_id": data["id"]},
        ) from e


def load_item_pool(records: Iterable[Union[Item, Mapping[str, Any]]]) -> List[Item]:
    """
    Validate an item pool, preserving its insertion order.

    Args:
        records: ``Item`` instances or item bank records. Order is kept as
            given (the bank collaborator is responsible for any shuffling).

    Returns:
        List of validated items.

    Raises:
        ItemParameterOutOfRangeError: On the first invalid item, or when two
            items share an id.
    """
    pool: List[Item] = []
    seen_ids = set()
    for record in records:
        item = record if isinstance(record, Item) else item_from_record(record)
        validate_item(item)
        if item.id in seen_ids:
            raise ItemParameterOutOfRangeError(
                f"Duplicate item id {item.id} in pool", context={"item_id": item.id}
            )
        seen_ids.add(item.id)
        pool.append(item)

    logger.info(f"Loaded item pool with {len(pool)} calibrated items")
    return pool
