"""
tests/test_criteria.py — Criteria Parsing
==========================================
"""

from __future__ import annotations

import pytest

from momentum.engine.criteria import (
    ComboCriteria,
    CriteriaError,
    ExactCriteria,
    MetaCriteria,
    SpecialCriteria,
    ThresholdCriteria,
    criteria_to_dict,
    parse_criteria,
)


class TestParseCriteria:
    def test_exact(self):
        assert parse_criteria("exact", {"streak": 30}) == ExactCriteria("streak", 30)

    def test_threshold(self):
        assert parse_criteria("threshold", {"messages": "1000"}) == ThresholdCriteria("messages", 1000)

    def test_combo_keeps_every_requirement(self):
        parsed = parse_criteria("combo", {"messages": 1000, "voice_hours": 100, "commands": 500})
        assert isinstance(parsed, ComboCriteria)
        assert dict(parsed.requirements) == {"messages": 1000, "voice_hours": 100, "commands": 500}

    def test_meta(self):
        assert parse_criteria("meta", {"achievement_count": 10}) == MetaCriteria(10)

    def test_special_splits_type_from_params(self):
        parsed = parse_criteria("special", {"type": "night_messages", "count": 1000, "hours": [0, 1]})
        assert parsed == SpecialCriteria("night_messages", {"count": 1000, "hours": [0, 1]})

    def test_special_does_not_mutate_input(self):
        raw = {"type": "comeback", "inactive_days": 30}
        parse_criteria("special", raw)
        assert raw == {"type": "comeback", "inactive_days": 30}


class TestRejectsBadCriteria:
    @pytest.mark.parametrize(
        ("check_type", "raw"),
        [
            ("exact", {}),
            ("threshold", {"messages": 1, "commands": 2}),
            ("threshold", {"karma": 10}),
            ("threshold", {"messages": "lots"}),
            ("threshold", {"messages": -1}),
            ("combo", {}),
            ("meta", {"count": 5}),
            ("special", {"count": 5}),
            ("bogus", {"streak": 1}),
        ],
    )
    def test_raises(self, check_type, raw):
        with pytest.raises(CriteriaError):
            parse_criteria(check_type, raw)

    def test_criteria_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_criteria("meta", None)


class TestCriteriaToDict:
    def test_special_restores_type_key(self):
        raw = {"type": "seasonal", "active_days": 7}
        assert criteria_to_dict(parse_criteria("special", raw)) == raw

    def test_meta(self):
        assert criteria_to_dict(MetaCriteria(25)) == {"achievement_count": 25}
