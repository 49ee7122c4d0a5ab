"""
Tests for the command line entry points.

Run with: python -m pytest tests/test_main.py -v
"""

import json
from argparse import Namespace

import pytest

from main import run_classify, run_predict, run_zones


class TestVdotCommands:
    """Tests for commands that take a VDOT argument."""

    def test_zones_valid_vdot(self, capsys):
        assert run_zones(50) == 0
        assert "Training paces for VDOT 50.0" in capsys.readouterr().out

    def test_predict_valid_vdot(self, capsys):
        assert run_predict(50) == 0
        assert "Half Marathon" in capsys.readouterr().out

    @pytest.mark.parametrize('vdot', [3, 14.9, 85.5, 90])
    def test_zones_out_of_range(self, vdot, capsys):
        assert run_zones(vdot) == 1
        out = capsys.readouterr().out
        assert out.startswith("Error: VDOT must be between 15 and 85")
        assert "Traceback" not in out

    @pytest.mark.parametrize('vdot', [3, 120])
    def test_predict_out_of_range(self, vdot, capsys):
        assert run_predict(vdot) == 1
        assert capsys.readouterr().out.startswith("Error: VDOT must be between 15 and 85")

    def test_classify_out_of_range(self, tmp_path, capsys):
        path = tmp_path / 'splits.json'
        path.write_text(json.dumps([]))
        args = Namespace(splits=str(path), vdot=90.0, workout_type=None)
        assert run_classify(args) == 1
        assert capsys.readouterr().out.startswith("Error: VDOT must be between 15 and 85")


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
