"""
Tests for split-by-split effort classification.

Tests cover:
1. Zone resolution from each source
2. Run mode inference
3. Raw classification and the tolerance band
4. Structural, anomaly, smoothing and hysteresis stages
5. Confidence scoring
6. Zone distribution and derived workout type

Run with: python -m pytest tests/test_effort_classifier.py -v
"""

import pytest

from training.config import get_default_config
from training.pace_model import calculate_pace_zones
from training.effort_classifier import (
    EffortCategory,
    RunMode,
    Split,
    ZoneBoundaries,
    ClassificationContext,
    resolve_zones,
    infer_run_mode,
    classify_raw,
    detect_structural,
    detect_anomaly,
    smooth_categories,
    apply_hysteresis,
    classify_split_efforts,
    classify_split_efforts_with_zones,
    compute_zone_distribution,
    derive_workout_type,
)

E = EffortCategory

ZONES = ZoneBoundaries(easy=540, steady=510, marathon=480, tempo=450, threshold=430, interval=400)
MANUAL = ClassificationContext(easy_pace=540)


def make_split(lap, pace, miles=1.0, hr=None):
    return Split(lap, miles, pace * miles, pace, hr)


def make_splits(paces, miles=1.0):
    return [make_split(i + 1, pace, miles) for i, pace in enumerate(paces)]


EMPTY_DISTRIBUTION = {category.value: 0.0 for category in EffortCategory}


# =============================================================================
# Zones
# =============================================================================

class TestResolveZones:
    """Tests for boundary resolution."""

    def test_vdot_matches_pace_zones(self):
        by_vdot = resolve_zones([], ClassificationContext(vdot=50))
        by_zones = resolve_zones([], ClassificationContext(pace_zones=calculate_pace_zones(50)))
        assert by_vdot == by_zones
        assert by_vdot.recovery == calculate_pace_zones(50).recovery

    def test_condition_adjustment_slows_every_boundary(self):
        base = resolve_zones([], ClassificationContext(vdot=50))
        hot = resolve_zones([], ClassificationContext(vdot=50, condition_adjustment=10))
        for slow, normal in zip(hot.effort_boundaries(), base.effort_boundaries()):
            assert slow == normal + 10

    def test_manual_easy_pace_offsets(self):
        zones = resolve_zones([], MANUAL)
        assert zones.effort_boundaries() == [540, 518, 495, 470, 455, 440]
        assert zones.recovery is None

    def test_manual_paces_override_offsets(self):
        zones = resolve_zones([], ClassificationContext(easy_pace=540, marathon_pace=500))
        assert zones.effort_boundaries() == [540, 520, 500, 475, 460, 445]

    def test_from_run_median(self):
        zones = resolve_zones(make_splits([500, 510, 520]), ClassificationContext())
        assert zones.effort_boundaries() == [530, 500, 480, 465, 450, 425]

    def test_from_average_pace_when_no_valid_splits(self):
        zones = resolve_zones([], ClassificationContext(avg_pace_seconds=450))
        assert zones.effort_boundaries() == [490, 460, 430, 405, 390, 365]

    def test_invalid_vdot_ignored(self):
        zones = resolve_zones([], ClassificationContext(vdot=10))
        assert zones.easy == 540


# =============================================================================
# Run mode
# =============================================================================

class TestRunMode:
    """Tests for run mode inference."""

    def test_declared_types(self):
        splits = make_splits([600] * 5)
        assert infer_run_mode(splits, ClassificationContext(workout_type='Race'), ZONES) == RunMode.RACE
        assert infer_run_mode(splits, ClassificationContext(workout_type='tempo'), ZONES) == RunMode.WORKOUT
        assert infer_run_mode(splits, ClassificationContext(workout_type='easy'), ZONES) == RunMode.EASY_RUN

    def test_steady_run_is_easy(self):
        assert infer_run_mode(make_splits([600] * 6), MANUAL, ZONES) == RunMode.EASY_RUN

    def test_variable_run_is_workout(self):
        zones = resolve_zones([], MANUAL)
        splits = make_splits([600, 440, 600, 440, 600])
        assert infer_run_mode(splits, ClassificationContext(), zones) == RunMode.WORKOUT

    def test_fast_even_run_is_race(self):
        zones = resolve_zones([], MANUAL)
        splits = make_splits([465, 466, 464, 465, 467])
        assert infer_run_mode(splits, ClassificationContext(), zones) == RunMode.RACE

    def test_single_split_is_easy(self):
        assert infer_run_mode(make_splits([420]), ClassificationContext(), ZONES) == RunMode.EASY_RUN


# =============================================================================
# Raw classification
# =============================================================================

class TestClassifyRaw:
    """Tests for single-pace classification."""

    @pytest.mark.parametrize('pace,expected', [
        (600, E.EASY),
        (520, E.STEADY),
        (490, E.MARATHON),
        (460, E.TEMPO),
        (440, E.THRESHOLD),
        (420, E.INTERVAL),
        (1000, E.RECOVERY),
    ])
    def test_zone_bands(self, pace, expected):
        assert classify_raw(pace, ZONES) == expected

    def test_boundary_belongs_to_slower_zone(self):
        assert classify_raw(540, ZONES) == E.EASY

    def test_tolerance_band_prefers_harder_zone(self):
        """A pace just slower than a boundary counts as the harder zone."""
        assert classify_raw(541, ZONES) == E.EASY
        assert classify_raw(541, ZONES, tolerance=2) == E.STEADY
        assert classify_raw(543, ZONES, tolerance=2) == E.EASY

    def test_explicit_recovery_boundary(self):
        zones = ZoneBoundaries(540, 510, 480, 450, 430, 400, recovery=600)
        assert classify_raw(620, zones) == E.RECOVERY


# =============================================================================
# Pipeline stages
# =============================================================================

class TestStructural:
    """Tests for warmup, cooldown and rest detection."""

    def test_short_runs_untouched(self):
        categories = [E.EASY] * 4
        assert detect_structural(make_splits([700, 600, 600, 700]), categories, ZONES,
                                 RunMode.EASY_RUN) == categories

    def test_warmup_and_cooldown(self):
        splits = make_splits([640, 600, 600, 600, 600, 660])
        result = detect_structural(splits, [E.EASY] * 6, ZONES, RunMode.EASY_RUN)
        assert result[0] == E.WARMUP
        assert result[-1] == E.COOLDOWN
        assert result[1:-1] == [E.EASY] * 4

    def test_marathon_race_effort(self):
        """A marathon run slightly faster than marathon pace stays marathon effort."""
        splits = make_splits([470] * 5, miles=5.5)
        result = detect_structural(splits, [E.TEMPO] * 5, ZONES, RunMode.RACE)
        assert result == [E.MARATHON] * 5

    def test_workout_slow_splits_are_rest(self):
        splits = make_splits([600, 420, 600, 420, 600])
        categories = [E.EASY, E.INTERVAL, E.EASY, E.INTERVAL, E.EASY]
        result = detect_structural(splits, categories, ZONES, RunMode.WORKOUT)
        assert result == [E.RECOVERY, E.INTERVAL, E.RECOVERY, E.INTERVAL, E.RECOVERY]


class TestAnomaly:
    """Tests for implausible split data."""

    def test_gps_artifact(self):
        assert "GPS" in detect_anomaly(make_split(1, 150))

    def test_tiny_split(self):
        assert "short split" in detect_anomaly(make_split(1, 500, miles=0.1))

    def test_normal_split(self):
        assert detect_anomaly(make_split(1, 500)) is None


class TestSmoothing:
    """Tests for three-split smoothing."""

    def test_lone_split_takes_neighbours_zone(self):
        assert smooth_categories([E.EASY, E.STEADY, E.EASY]) == [E.EASY] * 3

    def test_structural_splits_not_smoothed(self):
        categories = [E.EASY, E.WARMUP, E.EASY]
        assert smooth_categories(categories) == categories

    def test_disagreeing_neighbours(self):
        categories = [E.EASY, E.STEADY, E.MARATHON]
        assert smooth_categories(categories) == categories


class TestHysteresis:
    """Tests for context rules after smoothing."""

    def test_sticky_hard_zone(self):
        splits = make_splits([440, 451])
        result = apply_hysteresis(splits, [E.THRESHOLD, E.TEMPO], ZONES, RunMode.EASY_RUN)
        assert result == [E.THRESHOLD, E.THRESHOLD]

    def test_sticky_buffer_limit(self):
        splits = make_splits([440, 455])
        result = apply_hysteresis(splits, [E.THRESHOLD, E.TEMPO], ZONES, RunMode.EASY_RUN)
        assert result == [E.THRESHOLD, E.TEMPO]

    def test_race_dominant_zone_bias(self):
        splits = make_splits([470, 470, 470, 485])
        categories = [E.TEMPO, E.TEMPO, E.TEMPO, E.MARATHON]
        assert apply_hysteresis(splits, categories, ZONES, RunMode.RACE) == [E.TEMPO] * 4

    def test_race_bias_toward_easier_dominant_zone(self):
        """An easier dominant zone pulls a near-boundary split down."""
        splits = make_splits([490, 490, 490, 476])
        categories = [E.MARATHON, E.MARATHON, E.MARATHON, E.TEMPO]
        assert apply_hysteresis(splits, categories, ZONES, RunMode.RACE) == [E.MARATHON] * 4

    def test_sticky_zone_never_demotes_outside_race(self):
        splits = make_splits([470, 476])
        categories = [E.TEMPO, E.TEMPO]
        assert apply_hysteresis(splits, categories, ZONES, RunMode.WORKOUT) == [E.TEMPO, E.TEMPO]

    def test_race_bias_limit(self):
        splits = make_splits([470, 470, 470, 495])
        categories = [E.TEMPO, E.TEMPO, E.TEMPO, E.MARATHON]
        assert apply_hysteresis(splits, categories, ZONES, RunMode.RACE)[-1] == E.MARATHON

    def test_workout_rest_between_reps(self):
        splits = make_splits([420, 500, 420])
        categories = [E.INTERVAL, E.STEADY, E.INTERVAL]
        result = apply_hysteresis(splits, categories, ZONES, RunMode.WORKOUT)
        assert result[1] == E.RECOVERY

    def test_workout_slow_split_after_rep(self):
        splits = make_splits([420, 560, 520])
        categories = [E.INTERVAL, E.EASY, E.STEADY]
        result = apply_hysteresis(splits, categories, ZONES, RunMode.WORKOUT)
        assert result[1] == E.RECOVERY


# =============================================================================
# Full pipeline
# =============================================================================

class TestClassifySplits:
    """Tests for the full classification pipeline."""

    def test_empty_input(self):
        result = classify_split_efforts_with_zones([])
        assert result.splits == []
        assert result.zones.effort_boundaries() == [0] * 6

    def test_easy_run(self):
        result = classify_split_efforts_with_zones(make_splits([600] * 6), MANUAL)
        assert result.run_mode == RunMode.EASY_RUN
        assert [s.category for s in result.splits] == [E.EASY] * 6
        assert all(s.confidence == pytest.approx(0.9) for s in result.splits)

    def test_interval_workout(self):
        paces = [640, 600, 440, 600, 440, 600, 440, 660]
        miles = [1, 0.25, 1, 0.25, 1, 0.25, 1, 1]
        splits = [make_split(i + 1, p, m) for i, (p, m) in enumerate(zip(paces, miles))]
        context = ClassificationContext(easy_pace=540, workout_type='interval')

        result = classify_split_efforts_with_zones(splits, context)
        assert result.run_mode == RunMode.WORKOUT
        assert [s.category for s in result.splits] == [
            E.WARMUP, E.RECOVERY, E.INTERVAL, E.RECOVERY,
            E.INTERVAL, E.RECOVERY, E.INTERVAL, E.COOLDOWN,
        ]

        distribution = compute_zone_distribution(result.splits, splits)
        assert distribution['interval'] == 22.0
        assert distribution['recovery'] == 7.5
        assert distribution['warmup'] == 10.7
        assert derive_workout_type(distribution, 'interval', sum(miles)) == 'interval'

    def test_repeat_classification_identical(self):
        """Classifying the same splits again gives the same labels."""
        splits = make_splits([640, 600, 460, 455, 470, 600, 448, 660])
        context = ClassificationContext(vdot=50)
        first = classify_split_efforts_with_zones(splits, context)
        second = classify_split_efforts_with_zones(splits, context)
        assert first.to_dict() == second.to_dict()

    def test_gps_anomaly(self):
        splits = make_splits([600, 600, 150, 600, 600, 600])
        result = classify_split_efforts_with_zones(splits, MANUAL)
        spike = result.splits[2]
        assert spike.category == E.ANOMALY
        assert spike.confidence == 0.2
        assert "GPS" in spike.anomaly_reason
        assert all(s.category == E.EASY for i, s in enumerate(result.splits) if i != 2)

    def test_walking_split(self):
        result = classify_split_efforts(make_splits([600, 600, 1000]), MANUAL)
        assert result[-1].category == E.RECOVERY
        assert result[-1].confidence == 0.9

    def test_config_tolerance(self):
        splits = make_splits([541])
        assert classify_split_efforts(splits, MANUAL)[0].category == E.STEADY

        strict = get_default_config().with_overrides({'classifier': {'tolerance_seconds': 0}})
        result = classify_split_efforts_with_zones(splits, MANUAL, strict)
        assert result.splits[0].category == E.EASY

    def test_context_tolerance_wins(self):
        context = ClassificationContext(easy_pace=540, tolerance_seconds=0)
        assert classify_split_efforts(make_splits([541]), context)[0].category == E.EASY

    def test_heart_rate_agreement(self):
        splits = [make_split(i + 1, 600, hr=140) for i in range(3)]
        result = classify_split_efforts(splits, MANUAL)
        assert result[1].hr_agreement is True
        assert result[1].confidence == pytest.approx(1.0)

    def test_heart_rate_disagreement(self):
        splits = [make_split(i + 1, 600, hr=185) for i in range(3)]
        result = classify_split_efforts(splits, MANUAL)
        assert result[1].hr_agreement is False
        assert result[1].confidence == pytest.approx(0.7)

    def test_to_dict(self):
        data = classify_split_efforts_with_zones(make_splits([600] * 3), MANUAL).to_dict()
        assert data['run_mode'] == 'easy_run'
        assert data['splits'][0]['category'] == 'easy'
        assert data['splits'][0]['category_label'] == 'Easy'
        assert data['zones']['easy'] == 540


class TestSplit:
    """Tests for split construction."""

    def test_from_dict_derives_pace(self):
        split = Split.from_dict({
            'lap_number': 1, 'distance_miles': 0.5, 'duration_seconds': 300, 'elevation': 12,
        })
        assert split.avg_pace_seconds == 600
        assert split.avg_heart_rate is None


# =============================================================================
# Distribution and workout type
# =============================================================================

class TestDistribution:
    """Tests for time in zone."""

    def test_all_categories_present(self):
        splits = make_splits([600, 600])
        distribution = compute_zone_distribution(classify_split_efforts(splits, MANUAL), splits)
        assert set(distribution) == set(EMPTY_DISTRIBUTION)
        assert distribution['easy'] == 20.0

    def test_rounded_to_tenth(self):
        splits = [Split(1, 0.2, 130, 650)]
        distribution = compute_zone_distribution(classify_split_efforts(splits, MANUAL), splits)
        assert distribution['easy'] == 2.2


class TestDeriveWorkoutType:
    """Tests for the main purpose of a run."""

    def dist(self, **minutes):
        return {**EMPTY_DISTRIBUTION, **minutes}

    def test_declared_race_and_cross_training_kept(self):
        assert derive_workout_type(self.dist(), 'race') == 'race'
        assert derive_workout_type(self.dist(), 'cross_train') == 'cross_train'

    def test_long_by_distance(self):
        assert derive_workout_type(self.dist(easy=60), distance_miles=10) == 'long'

    def test_long_by_duration(self):
        assert derive_workout_type(self.dist(easy=50, warmup=15, cooldown=15)) == 'long'

    def test_dominant_zone(self):
        assert derive_workout_type(self.dist(easy=30, steady=5), distance_miles=4) == 'easy'
        assert derive_workout_type(self.dist(steady=30, easy=10), distance_miles=5) == 'steady'
        assert derive_workout_type(self.dist(marathon=25, easy=10), distance_miles=5) == 'marathon'

    def test_recovery_dominant(self):
        assert derive_workout_type(self.dist(recovery=20, easy=5), distance_miles=3) == 'recovery'

    def test_threshold_reported_as_tempo(self):
        assert derive_workout_type(self.dist(threshold=20, easy=5), distance_miles=4) == 'tempo'

    def test_mixed_hard_work(self):
        tempo = self.dist(easy=10, steady=10, tempo=8, threshold=5)
        interval = self.dist(easy=8, steady=7, interval=12, tempo=2)
        assert derive_workout_type(tempo, distance_miles=5) == 'tempo'
        assert derive_workout_type(interval, distance_miles=5) == 'interval'

    def test_aerobic_mix_is_easy(self):
        assert derive_workout_type(self.dist(easy=10, steady=10, marathon=8), distance_miles=4) == 'easy'

    def test_empty_distribution(self):
        assert derive_workout_type(self.dist()) == 'easy'
        assert derive_workout_type(self.dist(), 'tempo') == 'tempo'


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
