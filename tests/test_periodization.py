"""
Tests for macro plan periodization.

Tests cover:
1. Input validation errors
2. Phase week distribution
3. Mileage progression (down weeks, peak cap, taper)
4. Block dates anchored to race week
5. The 16-week half marathon scenario

Run with: python -m pytest tests/test_periodization.py -v
"""

import pytest
from datetime import date, timedelta

from training.config import get_default_config
from training.errors import InsufficientTimeError, MissingRaceError, MissingSettingsError
from training.periodization import (
    TrainingPhase,
    PlanAggressiveness,
    RacePriority,
    IntermediateRace,
    PhasePercentages,
    PlanGenerationInput,
    round_half_up,
    is_marathon,
    is_half_marathon,
    calculate_total_weeks,
    get_phase_percentages,
    calculate_phase_weeks,
    get_taper_schedule,
    calculate_mileage_progression,
    calculate_long_run_target,
    calculate_quality_sessions,
    get_phase_focus,
    generate_macro_plan,
    phase_week_index,
)
from training.profile import AthleteProfile

START = date(2025, 1, 6)


def make_input(weeks=16, distance=21097, current=20, peak=30, **kwargs):
    defaults = dict(
        current_weekly_mileage=current,
        peak_weekly_mileage_target=peak,
        runs_per_week=5,
        race_id=1,
        race_date=START + timedelta(weeks=weeks),
        race_distance_meters=distance,
        start_date=START,
    )
    defaults.update(kwargs)
    return PlanGenerationInput(**defaults)


# =============================================================================
# Helpers
# =============================================================================

class TestHelpers:
    """Tests for small helpers."""

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(2.49) == 2

    def test_distance_classes(self):
        assert is_marathon(42195)
        assert is_half_marathon(21097)
        assert not is_half_marathon(42195)
        assert not is_marathon(10000)

    def test_total_weeks(self):
        assert calculate_total_weeks(START, START + timedelta(days=112)) == 16
        assert calculate_total_weeks(START, START + timedelta(days=111)) == 15


# =============================================================================
# Validation
# =============================================================================

class TestValidation:
    """Tests for rejected inputs."""

    def test_missing_race_id(self):
        with pytest.raises(MissingRaceError):
            generate_macro_plan(make_input(race_id=None))

    def test_missing_race_date(self):
        with pytest.raises(MissingRaceError):
            generate_macro_plan(make_input(race_date=None))

    def test_missing_distance(self):
        with pytest.raises(MissingRaceError):
            generate_macro_plan(make_input(distance=0))

    def test_too_little_time(self):
        with pytest.raises(InsufficientTimeError) as excinfo:
            generate_macro_plan(make_input(weeks=3))
        assert excinfo.value.total_weeks == 3
        assert excinfo.value.minimum_weeks == 4

    def test_no_current_mileage(self):
        with pytest.raises(MissingSettingsError):
            generate_macro_plan(make_input(current=0))

    def test_no_peak_mileage(self):
        with pytest.raises(MissingSettingsError):
            generate_macro_plan(make_input(peak=0))

    def test_minimum_weeks_configurable(self):
        config = get_default_config().with_overrides({'plan': {'minimum_weeks': 8}})
        with pytest.raises(InsufficientTimeError):
            generate_macro_plan(make_input(weeks=6), config)


# =============================================================================
# Phases
# =============================================================================

class TestPhaseWeeks:
    """Tests for the phase week split."""

    def test_half_marathon_sixteen_weeks(self):
        weeks = calculate_phase_weeks(get_phase_percentages(21097), 16, 21097)
        assert weeks == {
            TrainingPhase.BASE: 4,
            TrainingPhase.BUILD: 8,
            TrainingPhase.PEAK: 2,
            TrainingPhase.TAPER: 2,
        }

    def test_marathon_taper_three_weeks(self):
        weeks = calculate_phase_weeks(get_phase_percentages(42195), 18, 42195)
        assert weeks[TrainingPhase.TAPER] == 3
        assert sum(weeks.values()) == 18

    def test_short_plan_trimmed_to_fit(self):
        """Every week belongs to exactly one phase even for minimal plans."""
        for total in range(4, 30):
            for distance in (5000, 10000, 21097, 42195):
                weeks = calculate_phase_weeks(get_phase_percentages(distance), total, distance)
                assert sum(weeks.values()) == total
                assert all(w >= 1 for w in weeks.values())

    def test_aggressiveness_shifts_base(self):
        conservative = get_phase_percentages(21097, PlanAggressiveness.CONSERVATIVE)
        aggressive = get_phase_percentages(21097, PlanAggressiveness.AGGRESSIVE)
        assert conservative.base == pytest.approx(0.30)
        assert conservative.build == pytest.approx(0.40)
        assert aggressive.base < conservative.base

    def test_taper_schedules(self):
        assert get_taper_schedule(3) == [0.80, 0.65, 0.50]
        assert get_taper_schedule(0) == []
        assert get_taper_schedule(5) == [0.9, 0.8, 0.7, 0.6, 0.5]

    def test_phase_focus(self):
        assert get_phase_focus(TrainingPhase.BUILD, 0) == 'Introducing tempo work'
        assert get_phase_focus(TrainingPhase.TAPER, 1) == 'Final preparation for race day'


# =============================================================================
# Mileage
# =============================================================================

class TestMileageProgression:
    """Tests for weekly mileage targets."""

    PHASES = {
        TrainingPhase.BASE: 4,
        TrainingPhase.BUILD: 8,
        TrainingPhase.PEAK: 2,
        TrainingPhase.TAPER: 2,
    }

    def test_half_marathon_progression(self):
        weeks = calculate_mileage_progression(20, 30, self.PHASES)
        assert [m for m, _ in weeks] == [
            20, 22, 24, 19, 26, 26, 26, 20, 27, 28, 28, 21, 30, 30, 23, 15
        ]
        assert [i + 1 for i, (_, down) in enumerate(weeks) if down] == [4, 8, 12]

    def test_start_above_peak(self):
        weeks = calculate_mileage_progression(40, 30, self.PHASES)
        assert max(m for m, _ in weeks) <= 30

    def test_conservative_mileage_slows_base(self):
        normal = calculate_mileage_progression(20, 40, self.PHASES)
        careful = calculate_mileage_progression(20, 40, self.PHASES, conservative_mileage=True)
        assert careful[2][0] < normal[2][0]

    def test_long_run_target(self):
        assert calculate_long_run_target(20, TrainingPhase.BASE) == 6
        assert calculate_long_run_target(15, TrainingPhase.TAPER) == 4

    def test_long_run_comfort(self):
        profile = AthleteProfile(comfort_long_runs=1)
        assert calculate_long_run_target(40, TrainingPhase.BUILD, profile) == 11

    def test_quality_sessions(self):
        assert calculate_quality_sessions(3, TrainingPhase.BASE, False) == 2
        assert calculate_quality_sessions(2, TrainingPhase.TAPER, False) == 1
        assert calculate_quality_sessions(2, TrainingPhase.BUILD, True) == 1
        assert calculate_quality_sessions(0, TrainingPhase.BUILD, True) == 0


# =============================================================================
# Full plan
# =============================================================================

class TestMacroPlan:
    """Tests for generate_macro_plan."""

    def test_sixteen_week_half(self):
        plan = generate_macro_plan(make_input())
        assert plan.total_weeks == 16
        assert len(plan.blocks) == 16
        assert [b.week_number for b in plan.blocks] == list(range(1, 17))

        taper = [b for b in plan.blocks if b.phase == TrainingPhase.TAPER]
        assert 2 <= len(taper) <= 3
        assert all(a.target_mileage > b.target_mileage for a, b in zip(taper, taper[1:]))

        first_peak = next(b for b in plan.blocks if b.phase == TrainingPhase.PEAK)
        assert any(b.is_down_week for b in plan.blocks if b.week_number < first_peak.week_number)

    def test_summary(self):
        summary = generate_macro_plan(make_input()).summary()
        assert summary['peak_mileage'] == 30
        assert summary['peak_week'] == 13
        assert summary['total_miles'] == 385
        assert summary['total_weeks'] == 16

    def test_blocks_anchored_to_race_week(self):
        plan = generate_macro_plan(make_input())
        race_block = plan.blocks[-1]
        assert race_block.contains(plan.race_date)
        assert race_block.start_date.weekday() == 0
        for previous, block in zip(plan.blocks, plan.blocks[1:]):
            assert block.start_date == previous.end_date + timedelta(days=1)

    def test_deterministic(self):
        first = generate_macro_plan(make_input())
        second = generate_macro_plan(make_input())
        assert first.to_dict() == second.to_dict()

    @pytest.mark.parametrize('distance', [5000, 10000, 21097, 42195])
    @pytest.mark.parametrize('aggressiveness', list(PlanAggressiveness))
    def test_invariants(self, distance, aggressiveness):
        plan = generate_macro_plan(make_input(
            weeks=18, distance=distance, current=25, peak=45,
            plan_aggressiveness=aggressiveness,
        ))
        mileages = [b.target_mileage for b in plan.blocks]
        assert max(mileages) <= 45
        for previous, block in zip(plan.blocks, plan.blocks[1:]):
            if block.is_down_week:
                assert block.target_mileage < previous.target_mileage
            if block.phase == TrainingPhase.TAPER and previous.phase == TrainingPhase.TAPER:
                assert block.target_mileage <= previous.target_mileage
        phases = [b.phase for b in plan.blocks]
        order = [TrainingPhase.BASE, TrainingPhase.BUILD, TrainingPhase.PEAK, TrainingPhase.TAPER]
        assert phases == sorted(phases, key=order.index)

    def test_four_week_plan(self):
        plan = generate_macro_plan(make_input(weeks=4))
        assert len(plan.blocks) == 4
        assert plan.blocks[-1].phase == TrainingPhase.TAPER

    def test_phase_week_index(self):
        plan = generate_macro_plan(make_input())
        assert phase_week_index(plan.blocks, 5) == 0
        assert phase_week_index(plan.blocks, 12) == 7
        assert phase_week_index(plan.blocks, 14) == 1
        assert phase_week_index(plan.blocks, 99) == 0

    def test_to_dict_iso_dates(self):
        data = generate_macro_plan(make_input()).to_dict()
        assert data['race_date'] == (START + timedelta(weeks=16)).isoformat()
        assert data['blocks'][0]['phase'] == 'base'
        assert len(data['phases']) == 4


class TestIntermediateRace:
    """Tests for tune-up races."""

    def test_to_dict(self):
        race = IntermediateRace('Spring 10K', date(2025, 3, 15), 10000, RacePriority.C)
        assert race.to_dict() == {
            'name': 'Spring 10K',
            'date': '2025-03-15',
            'distance_meters': 10000,
            'priority': 'C',
        }

    def test_default_priority(self):
        assert IntermediateRace('Tune-up', date(2025, 3, 15), 10000).priority == RacePriority.B

    def test_goal_priority_rejected(self):
        """A races are goal races, never tune-ups."""
        with pytest.raises(ValueError):
            IntermediateRace('Spring Marathon', date(2025, 3, 15), 42195, RacePriority.A)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
