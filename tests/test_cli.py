"""
Tests for the pyregselect command line.
"""

import json

import pytest

from pyregselect.cli import build_parser, main, parse_args


def test_list(capsys):
    assert main(["--list"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert [line.split()[0] for line in out] == ['insurance', 'wine', 'admissions', 'titanic']


def test_run_prints_report(admissions_csv, capsys):
    assert main(["admissions", str(admissions_csv)]) == 0
    out = capsys.readouterr().out
    assert out.startswith("=== admissions ===")
    assert "Logistic regression" in out


def test_config_file(admissions_csv, tmp_path, capsys):
    config = tmp_path / "settings.json"
    config.write_text(json.dumps({'threshold': 0.4}))
    assert main(["admissions", str(admissions_csv), "--config", str(config)]) == 0
    assert "Confusion matrix (threshold 0.4)" in capsys.readouterr().out


def test_data_error_exits_2(tmp_path, capsys):
    assert main(["wine", str(tmp_path / "missing.csv")]) == 2
    err = capsys.readouterr().err
    assert err.startswith("error: ")
    assert "No such file" in err


def test_bad_config_exits_2(admissions_csv, tmp_path, capsys):
    config = tmp_path / "settings.json"
    config.write_text(json.dumps({'threshold': 2.0}))
    assert main(["admissions", str(admissions_csv), "--config", str(config)]) == 2
    assert "threshold" in capsys.readouterr().err


def test_arguments_required():
    with pytest.raises(SystemExit) as exc:
        parse_args(["insurance"])
    assert exc.value.code == 2


def test_unknown_workflow_rejected():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["housing", "data.csv"])
