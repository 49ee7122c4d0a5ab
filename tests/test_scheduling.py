"""
Tests for weekly structure building.

Run with: python -m pytest tests/test_scheduling.py -v
"""

import pytest

from training.scheduling import (
    DayOfWeek,
    SlotKind,
    WeeklyStructure,
    create_weekly_structure,
    validate_hard_easy_pattern,
    calculate_effort_distribution,
    format_weekly_structure,
)


class TestDayOfWeek:
    """Tests for day parsing."""

    def test_parse_names(self):
        assert DayOfWeek.parse('saturday') == DayOfWeek.SATURDAY
        assert DayOfWeek.parse('Sat') == DayOfWeek.SATURDAY
        assert DayOfWeek.parse(' TUESDAY ') == DayOfWeek.TUESDAY

    def test_parse_index(self):
        assert DayOfWeek.parse(0) == DayOfWeek.MONDAY
        assert DayOfWeek.parse(DayOfWeek.FRIDAY) == DayOfWeek.FRIDAY

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            DayOfWeek.parse('someday')

    def test_offset_wraps(self):
        assert DayOfWeek.SUNDAY.offset(1) == DayOfWeek.MONDAY
        assert DayOfWeek.MONDAY.offset(-1) == DayOfWeek.SUNDAY


class TestCreateWeeklyStructure:
    """Tests for slot assignment."""

    def test_default_five_runs(self):
        structure = create_weekly_structure(5, 'sunday')
        assert len(structure.days) == 7
        assert structure.slot(DayOfWeek.SUNDAY) == SlotKind.LONG
        assert structure.quality_days == [DayOfWeek.TUESDAY, DayOfWeek.THURSDAY]
        assert structure.days_of_kind(SlotKind.EASY) == [DayOfWeek.MONDAY, DayOfWeek.WEDNESDAY]
        assert len(structure.run_days) == 5

    def test_single_long_run(self):
        for runs in range(1, 8):
            structure = create_weekly_structure(runs, 'saturday')
            assert structure.days_of_kind(SlotKind.LONG) == [DayOfWeek.SATURDAY]

    def test_rest_requests_honored(self):
        structure = create_weekly_structure(
            5, 'sunday', ['tuesday', 'thursday'], ['monday', 'friday']
        )
        assert structure.rest_days == [DayOfWeek.MONDAY, DayOfWeek.FRIDAY]
        assert structure.days_of_kind(SlotKind.EASY) == [DayOfWeek.WEDNESDAY, DayOfWeek.SATURDAY]

    def test_quality_not_next_to_long_run(self):
        """Preferred quality days adjacent to the long run are skipped."""
        structure = create_weekly_structure(5, 'sunday', ['saturday'])
        assert DayOfWeek.SATURDAY not in structure.quality_days
        assert structure.quality_days == [DayOfWeek.TUESDAY, DayOfWeek.THURSDAY]

    def test_preferred_quality_beats_rest_request(self):
        structure = create_weekly_structure(5, 'sunday', ['wednesday'], ['wednesday'])
        assert structure.slot(DayOfWeek.WEDNESDAY) == SlotKind.QUALITY

    def test_long_run_beats_rest_request(self):
        structure = create_weekly_structure(4, 'saturday', rest_days=['saturday'])
        assert structure.slot(DayOfWeek.SATURDAY) == SlotKind.LONG

    def test_quality_quota_leaves_room(self):
        """Quality sessions never take every run day."""
        structure = create_weekly_structure(2, 'sunday', quality_sessions_per_week=2)
        assert len(structure.quality_days) == 1
        assert len(structure.run_days) == 2

    def test_seven_runs_no_rest(self):
        structure = create_weekly_structure(7, 'sunday')
        assert structure.rest_days == []

    def test_rest_requests_can_cost_run_days(self):
        """Fallback slots never override a rest request."""
        structure = create_weekly_structure(6, 'sunday', rest_days=['mon', 'tue', 'wed'])
        for day in (DayOfWeek.MONDAY, DayOfWeek.TUESDAY, DayOfWeek.WEDNESDAY):
            assert structure.slot(day) == SlotKind.REST
        assert len(structure.run_days) == 4

    @pytest.mark.parametrize('runs', range(1, 8))
    @pytest.mark.parametrize('rest', [[], ['tuesday'], ['monday', 'thursday', 'saturday']])
    def test_every_day_assigned_once(self, runs, rest):
        structure = create_weekly_structure(runs, 'sunday', ['tuesday', 'thursday'], rest)
        assert len(structure.days) == 7
        assert not set(structure.quality_days) & set(structure.rest_days)

    def test_runs_clamped(self):
        assert len(create_weekly_structure(10, 'sunday').run_days) == 7
        assert len(create_weekly_structure(0, 'sunday').run_days) == 1


class TestStructureChecks:
    """Tests for pattern and distribution checks."""

    def test_default_pattern_valid(self):
        assert validate_hard_easy_pattern(create_weekly_structure(5, 'sunday'))

    def test_adjacent_key_days_invalid(self):
        structure = WeeklyStructure()
        structure.days[DayOfWeek.SATURDAY] = SlotKind.QUALITY
        structure.days[DayOfWeek.SUNDAY] = SlotKind.LONG
        assert not validate_hard_easy_pattern(structure)

    def test_effort_distribution(self):
        distribution = calculate_effort_distribution(create_weekly_structure(5, 'sunday'))
        assert distribution == {'easy_percent': 40, 'hard_percent': 60}

    def test_empty_distribution(self):
        assert calculate_effort_distribution(WeeklyStructure()) == {'easy_percent': 100, 'hard_percent': 0}

    def test_to_dict(self):
        data = create_weekly_structure(5, 'sunday').to_dict()
        assert data['days']['sunday'] == 'long'
        assert data['long_run_day'] == 'sunday'
        assert data['quality_days'] == ['tuesday', 'thursday']

    def test_format(self):
        text = format_weekly_structure(create_weekly_structure(5, 'sunday'))
        assert "SUNDAY" in text
        assert "REST" in text


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
