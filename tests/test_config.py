"""
Tests for plan rule configuration.

Run with: python -m pytest tests/test_config.py -v
"""

import pytest

from training.config import (
    CONFIG_ENV_VAR,
    PlanConfig,
    load_config,
    get_default_config,
    reset_default_config,
)


@pytest.fixture
def fresh_default():
    reset_default_config()
    yield
    reset_default_config()


@pytest.fixture
def override_file(tmp_path):
    path = tmp_path / "rules.yaml"
    path.write_text("plan:\n  minimum_weeks: 6\nmileage:\n  increase_rate:\n    moderate: 0.09\n")
    return path


class TestPlanConfig:
    """Tests for dotted-key lookup."""

    def test_packaged_defaults(self):
        config = load_config()
        assert config.get('plan.minimum_weeks') == 4
        assert config.get('mileage.increase_rate.moderate') == 0.10
        assert config.get('mileage.taper_schedules')[2] == [0.75, 0.50]
        assert config.get('window.max_blocks') == 3

    def test_missing_key_default(self):
        config = load_config()
        assert config.get('plan.unknown') is None
        assert config.get('plan.unknown', 7) == 7
        assert config.get('plan.minimum_weeks.deeper', 'x') == 'x'

    def test_whole_tree(self):
        config = PlanConfig(rules={'a': 1})
        assert config.get() == {'a': 1}

    def test_require(self):
        config = load_config()
        assert config.require('plan.minimum_weeks') == 4
        with pytest.raises(KeyError):
            config.require('plan.unknown')

    def test_with_overrides_merges(self):
        config = load_config()
        changed = config.with_overrides({'mileage': {'increase_rate': {'moderate': 0.2}}})
        assert changed.get('mileage.increase_rate.moderate') == 0.2
        assert changed.get('mileage.increase_rate.aggressive') == 0.12
        assert config.get('mileage.increase_rate.moderate') == 0.10

    def test_to_dict_is_a_copy(self):
        config = load_config()
        data = config.to_dict()
        data['plan']['minimum_weeks'] = 99
        assert config.get('plan.minimum_weeks') == 4


class TestLoadConfig:
    """Tests for override files."""

    def test_override_file(self, override_file):
        config = load_config(str(override_file))
        assert config.get('plan.minimum_weeks') == 6
        assert config.get('mileage.increase_rate.moderate') == 0.09
        assert config.get('mileage.increase_rate.conservative') == 0.08
        assert config.source == str(override_file)

    def test_env_override(self, override_file, monkeypatch, fresh_default):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(override_file))
        assert load_config().get('plan.minimum_weeks') == 6
        assert get_default_config().get('plan.minimum_weeks') == 6

    def test_missing_override(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "absent.yaml"))

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError):
            load_config(str(path))

    def test_empty_override(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(str(path)).get('plan.minimum_weeks') == 4

    def test_default_cached(self, fresh_default):
        first = get_default_config()
        assert get_default_config() is first
        reset_default_config()
        assert get_default_config() is not first


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
