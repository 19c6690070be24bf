"""
Tests for item validation and pool loading.
"""

import pytest

from iqcat.core.exceptions import ItemParameterOutOfRangeError
from iqcat.core.item_bank import Item, item_from_record, load_item_pool, validate_item
from iqcat.domain_types import QuestionCategory, TaskType


class TestValidateItem:
    """Tests for parameter range checks."""

    @pytest.mark.parametrize(
        "a,b,c",
        [(0.5, -3.0, 0.0), (3.0, 3.0, 0.5), (1.2, 0.0, 0.25)],
    )
    def test_accepts_boundaries(self, make_item, a, b, c):
        validate_item(make_item(a=a, b=b, c=c))

    @pytest.mark.parametrize(
        "a,b,c,field",
        [
            (0.49, 0.0, 0.2, "discrimination"),
            (3.01, 0.0, 0.2, "discrimination"),
            (1.0, -3.1, 0.2, "difficulty"),
            (1.0, 3.1, 0.2, "difficulty"),
            (1.0, 0.0, -0.01, "guessing"),
            (1.0, 0.0, 0.51, "guessing"),
        ],
    )
    def test_rejects_out_of_range(self, make_item, a, b, c, field):
        with pytest.raises(ItemParameterOutOfRangeError) as exc_info:
            validate_item(make_item("bad", a=a, b=b, c=c))
        assert field in str(exc_info.value)
        assert exc_info.value.context["item_id"] == "bad"

    def test_rejects_nan(self, make_item):
        with pytest.raises(ItemParameterOutOfRangeError):
            validate_item(make_item(a=float("nan")))

    def test_rejects_non_positive_time_limit(self, make_item):
        with pytest.raises(ItemParameterOutOfRangeError):
            validate_item(make_item(time_limit_seconds=0.0))

    def test_is_value_error(self, make_item):
        with pytest.raises(ValueError):
            validate_item(make_item(a=10.0))


class TestItemFromRecord:
    """Tests for building items from item bank records."""

    def test_short_parameter_names(self):
        item = item_from_record(
            {"id": 17, "category": "spatial_reasoning", "a": 1.3, "b": -0.4, "c": 0.2}
        )
        assert item == Item(
            id="17",
            category=QuestionCategory.SPATIAL_REASONING,
            discrimination=1.3,
            difficulty=-0.4,
            guessing=0.2,
        )

    def test_full_record(self):
        item = item_from_record(
            {
                "id": "M-1",
                "category": "short_term_memory",
                "discrimination": 1.0,
                "difficulty": 0.5,
                "guessing": 0.0,
                "task_type": "digit_span",
                "time_limit_seconds": 30,
                "correct_option": 2,
                "payload": {"sequence": [3, 1, 4]},
            }
        )
        assert item.task_type == TaskType.DIGIT_SPAN
        assert item.time_limit_seconds == 30
        assert item.correct_option == 2
        assert item.payload["sequence"] == [3, 1, 4]

    def test_payload_is_read_only(self):
        item = item_from_record(
            {"id": "x", "category": "pattern_recognition", "a": 1, "b": 0, "c": 0, "payload": {"k": 1}}
        )
        with pytest.raises(TypeError):
            item.payload["k"] = 2

    @pytest.mark.parametrize(
        "record",
        [
            {"category": "pattern_recognition", "a": 1, "b": 0, "c": 0},
            {"id": "x", "category": "astrology", "a": 1, "b": 0, "c": 0},
            {"id": "x", "category": "pattern_recognition", "a": 1, "b": 0},
            {"id": "x", "category": "pattern_recognition", "a": 1, "b": 0, "c": 0, "color": "red"},
        ],
    )
    def test_invalid_records(self, record):
        with pytest.raises(ItemParameterOutOfRangeError):
            item_from_record(record)


class TestLoadItemPool:
    """Tests for pool loading."""

    def test_preserves_order(self, make_item):
        items = [make_item("c"), make_item("a"), make_item("b")]
        assert [i.id for i in load_item_pool(items)] == ["c", "a", "b"]

    def test_mixed_items_and_records(self, make_item):
        pool = load_item_pool(
            [make_item("q1"), {"id": "q2", "category": "numerical_reasoning", "a": 1, "b": 0, "c": 0}]
        )
        assert [i.id for i in pool] == ["q1", "q2"]
        assert pool[1].category == QuestionCategory.NUMERICAL_REASONING

    def test_rejects_whole_pool_on_first_bad_item(self, make_item):
        with pytest.raises(ItemParameterOutOfRangeError) as exc_info:
            load_item_pool([make_item("ok"), make_item("bad", b=4.0), make_item("worse", a=9.0)])
        assert exc_info.value.context["item_id"] == "bad"

    def test_rejects_duplicate_ids(self, make_item):
        with pytest.raises(ItemParameterOutOfRangeError):
            load_item_pool([make_item("q1"), make_item("q1", b=1.0)])

    def test_empty_pool(self):
        assert load_item_pool([]) == []
