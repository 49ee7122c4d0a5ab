"""
Tests for the workout template library.

Run with: python -m pytest tests/test_workout_templates.py -v
"""

import pytest

from training.pace_model import calculate_pace_zones
from training.workout_templates import (
    WorkoutSegment,
    load_templates,
    all_templates,
    get_workout_template,
    get_templates_for_phase,
    get_templates_by_category,
    get_key_workout_templates,
    find_template,
)


class TestLibrary:
    """Tests for the packaged library."""

    def test_unique_ids(self):
        templates = all_templates()
        assert len(templates) > 20
        assert len({t.id for t in templates}) == len(templates)

    def test_every_template_has_phases_and_distance(self):
        for template in all_templates():
            assert template.phases, template.id
            assert template.distance_miles_min <= template.distance_miles_max
            assert template.effort_min <= template.effort_max

    def test_category_from_section(self):
        assert get_workout_template('easy_run').category == 'easy'
        assert get_workout_template('easy_long_run').category == 'long'

    def test_category_override(self):
        assert get_workout_template('recovery_run').category == 'recovery'
        assert get_workout_template('threshold_intervals').category == 'threshold'

    def test_unknown_id(self):
        assert get_workout_template('moon_run') is None

    def test_phase_filter(self):
        taper = {t.id for t in get_templates_for_phase('taper')}
        assert 'easy_run' in taper
        assert 'easy_long_run' not in taper

    def test_category_filter(self):
        assert all(t.category == 'easy' for t in get_templates_by_category('easy'))

    def test_key_workouts(self):
        keys = get_key_workout_templates()
        assert keys and all(t.is_key_workout for t in keys)
        assert get_workout_template('race_day') in keys

    def test_find_template_fallback(self):
        assert find_template('easy_run', 'long').id == 'easy_run'
        assert find_template('moon_run', 'easy').id == 'easy_run'
        assert find_template('moon_run', 'swimming') is None


class TestTemplate:
    """Tests for per-template helpers."""

    def test_target_pace(self):
        zones = calculate_pace_zones(50)
        easy = get_workout_template('easy_run')
        assert easy.target_pace(zones) == zones.easy
        assert easy.target_pace(None) is None

    def test_display_name(self):
        zones = calculate_pace_zones(50)
        easy = get_workout_template('easy_run')
        assert easy.display_name() == 'Easy Run'
        assert easy.display_name(zones).startswith('Easy Run @ ')

    def test_effort_description(self):
        text = get_workout_template('easy_run').effort_description()
        assert text.startswith('Conversational')
        assert text.endswith('50-65% effort')

    def test_structure(self):
        strides = get_workout_template('easy_run_strides').structure()
        assert strides[0] == {'type': 'steady', 'pace': 'easy'}
        assert strides[1]['repeats'] == 5
        assert 'distance_miles' not in strides[1]

    def test_to_dict(self):
        data = get_workout_template('easy_run').to_dict()
        assert data['id'] == 'easy_run'
        assert data['phases'] == ['base', 'build', 'peak', 'taper', 'recovery']

    def test_segment_distances_list(self):
        segment = WorkoutSegment.from_dict({'type': 'intervals', 'distances_meters': [400, 800]})
        assert segment.distances_meters == (400, 800)
        assert segment.to_dict() == {'type': 'intervals', 'distances_meters': [400, 800]}


class TestLoadTemplates:
    """Tests for reading template files."""

    def test_defaults(self, tmp_path):
        path = tmp_path / "templates.yaml"
        path.write_text(
            "easy:\n"
            "  - id: jog\n"
            "    name: Jog\n"
            "    phases: [base]\n"
        )
        templates = load_templates(path)
        jog = templates['jog']
        assert jog.category == 'easy'
        assert (jog.effort_min, jog.effort_max) == (50, 65)
        assert jog.segments == ()
        assert not jog.is_key_workout

    def test_duplicate_ids_rejected(self, tmp_path):
        path = tmp_path / "templates.yaml"
        path.write_text(
            "easy:\n"
            "  - {id: jog, name: Jog}\n"
            "long:\n"
            "  - {id: jog, name: Long Jog}\n"
        )
        with pytest.raises(ValueError):
            load_templates(path)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
