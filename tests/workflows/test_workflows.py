"""
End-to-end runs of the four analysis workflows on synthetic files.
"""

import dataclasses
import json

import numpy as np
import pandas as pd
import pytest

from pyregselect.anova import AnovaSolution
from pyregselect.core.exceptions import ValidationError
from pyregselect.regression import GLMSolution, LinearSolution
from pyregselect.workflows import (
    WORKFLOWS,
    WorkflowConfig,
    WorkflowReport,
    format_frame,
    run_workflow,
)


class TestInsurance:

    @pytest.fixture
    def report(self, insurance_csv):
        return run_workflow('insurance', insurance_csv)

    def test_sections_in_order(self, report):
        titles = report.titles
        for expected in [
            'Full model', 'Sequential ANOVA', 'Variance inflation factors',
            'Box-Cox transformation', 'log(charges) model',
            "Influential rows (Cook's distance)", 'Stepwise selection', 'Best subsets',
        ]:
            assert expected in titles
        assert titles.index('Box-Cox transformation') < titles.index('log(charges) model')
        assert titles.index('log(charges) model') < titles.index('Stepwise selection')

    def test_log_response_suggested(self, report):
        assert abs(report.results['boxcox'].lambda_hat) <= 0.3

    def test_influential_rows_removed(self, report):
        logged = report.results['log']
        cleaned = report.results['cleaned']
        assert cleaned.nobs < logged.nobs
        assert str(cleaned.formula).startswith("log(charges) ~")

    def test_selection_keeps_smoker(self, report):
        assert 'smoker' in report.results['step'].formula
        assert report.results['subsets'].nvmax == 8

    def test_smoker_reference_level(self, report):
        assert 'smokeryes' in report.results['full'].names

    def test_render(self, report):
        text = report.render()
        assert text.startswith("=== insurance ===\n")
        assert "Residual standard error" in text
        assert text.endswith("\n")


class TestWine:

    @pytest.fixture
    def report(self, wine_csv):
        return run_workflow('wine', wine_csv, WorkflowConfig(k='log'))

    def test_predictors_standardized(self, report):
        full = report.results['full']
        assert isinstance(full, LinearSolution)
        X = full.design.X[:, 1:]
        np.testing.assert_allclose(X.mean(axis=0), 0.0, atol=1e-10)
        np.testing.assert_allclose(X.std(axis=0, ddof=1), 1.0, rtol=1e-10)

    def test_selection_results(self, report):
        assert report.results['fitall'].n_models == 2 ** 11 - 1
        assert 'alcohol' in report.results['step'].formula
        assert any(t.startswith('Coefficients of the BIC-best subset') for t in report.titles)

    def test_comparison_with_full_model(self, report):
        comparison = report.results['comparison']
        assert isinstance(comparison, AnovaSolution)
        assert comparison.to_frame().shape[0] == 2
        assert 'Selected versus full model' in report.titles


class TestAdmissions:

    @pytest.fixture
    def report(self, admissions_csv):
        return run_workflow('admissions', admissions_csv)

    def test_model(self, report):
        model = report.results['model']
        assert isinstance(model, GLMSolution)
        assert model.names == ('(Intercept)', 'gre', 'gpa', 'rank2', 'rank3', 'rank4')

    def test_tables(self, report):
        assert 'Odds ratios' in report.titles
        assert "Analysis of Deviance Table" in report.section('Analysis of deviance')
        assert "Single term deletions" in report.section('Single term deletions')

    def test_probability_grid(self, report):
        body = report.section('Admission probability by rank at mean gre and gpa')
        assert 'P(admit)' in body
        assert len(body.splitlines()) == 2 + 4

    def test_confusion_covers_every_row(self, report):
        assert report.results['confusion'].n == report.results['model'].nobs

    def test_threshold_from_config(self, admissions_csv):
        report = run_workflow('admissions', admissions_csv, WorkflowConfig(threshold=0.3))
        assert 'Confusion matrix (threshold 0.3)' in report.titles
        assert report.results['confusion'].threshold == 0.3


class TestTitanic:

    @pytest.fixture
    def report(self, titanic_csv):
        return run_workflow('titanic', titanic_csv)

    def test_missing_rows_dropped_before_split(self, report):
        body = report.section('Missing values')
        assert "Age" in body
        model = report.results['model']
        test_cm = report.results['test_confusion']
        complete = int(body.rsplit(",", 1)[1].split()[0])
        assert model.nobs + test_cm.n == complete

    def test_split_fraction(self, report):
        model = report.results['model']
        test_cm = report.results['test_confusion']
        assert model.nobs == int(np.floor(0.7 * (model.nobs + test_cm.n)))

    def test_sex_selected(self, report):
        assert 'Sex' in report.results['step'].formula

    def test_confusion_matrices(self, report):
        train = report.results['train_confusion']
        test = report.results['test_confusion']
        assert train.n == report.results['step'].model.nobs
        assert 0.5 < test.accuracy <= 1.0

    def test_seed_changes_split(self, titanic_csv):
        a = run_workflow('titanic', titanic_csv, WorkflowConfig(seed=1))
        b = run_workflow('titanic', titanic_csv, WorkflowConfig(seed=2))
        assert not np.allclose(a.results['model'].coefficients, b.results['model'].coefficients)

    def test_forward_direction(self, titanic_csv):
        report = run_workflow('titanic', titanic_csv, WorkflowConfig(direction='forward'))
        selected = report.results['step']
        assert selected.initial_formula == "Survived ~ 1"
        assert selected.changes[0].startswith('+ ')


class TestRunWorkflow:

    def test_registry(self):
        assert set(WORKFLOWS) == {'insurance', 'wine', 'admissions', 'titanic'}
        assert all(w.description for w in WORKFLOWS.values())

    def test_unknown_workflow(self, insurance_csv):
        with pytest.raises(ValidationError, match="unknown name"):
            run_workflow('housing', insurance_csv)

    def test_wrong_file_for_workflow(self, insurance_csv):
        with pytest.raises(ValidationError, match="missing columns"):
            run_workflow('admissions', insurance_csv)

    def test_warnings_collected(self, tmp_path):
        gpa = np.linspace(2.5, 4.0, 40)
        frame = pd.DataFrame({
            'admit': (gpa > 3.3).astype(int),
            'gre': np.tile([500, 600, 700, 800], 10),
            'gpa': gpa,
            'rank': np.tile([1, 2, 3, 4], 10),
        })
        path = tmp_path / "separated.csv"
        frame.to_csv(path, index=False)
        report = run_workflow('admissions', path)
        assert report.titles[-1] == 'Warnings'
        assert "fitted probabilities numerically 0 or 1" in report.section('Warnings')


class TestConfig:

    def test_defaults(self):
        config = WorkflowConfig()
        assert config.seed == 42
        assert config.train_fraction == 0.7
        assert config.penalty(100) == 2.0

    def test_log_penalty(self):
        assert WorkflowConfig(k='log').penalty(100) == pytest.approx(np.log(100))

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            WorkflowConfig().seed = 1

    @pytest.mark.parametrize("kwargs", [
        {'train_fraction': 1.0},
        {'threshold': 0.0},
        {'level': 95},
        {'nvmax': 0},
        {'k': 'aic'},
        {'k': -1.0},
        {'direction': 'up'},
        {'cooks_cutoff': 0.0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValidationError):
            WorkflowConfig(**kwargs)

    def test_from_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({'seed': 7, 'k': 'log', 'nvmax': 5}))
        config = WorkflowConfig.from_json(path)
        assert (config.seed, config.k, config.nvmax) == (7, 'log', 5)
        assert config.threshold == 0.5

    def test_from_json_unknown_key(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({'sed': 7}))
        with pytest.raises(ValidationError, match="unknown settings"):
            WorkflowConfig.from_json(path)

    def test_from_json_errors(self, tmp_path):
        with pytest.raises(ValidationError, match="not found"):
            WorkflowConfig.from_json(tmp_path / "absent.json")
        bad = tmp_path / "bad.json"
        bad.write_text("{seed: 7")
        with pytest.raises(ValidationError, match="not valid JSON"):
            WorkflowConfig.from_json(bad)
        listed = tmp_path / "list.json"
        listed.write_text("[1, 2]")
        with pytest.raises(ValidationError, match="JSON object"):
            WorkflowConfig.from_json(listed)


class TestReport:

    def test_render_layout(self):
        report = WorkflowReport('demo', 'A description')
        report.add('First', 'body one\n')
        report.add('Second', pd.Series([1.23456, np.nan], index=['a', 'b']))
        text = report.render()
        assert text.startswith("=== demo ===\nA description\n\nFirst\n-----\nbody one\n\nSecond\n------\n")
        assert "1.235" in text
        assert "NaN" not in text
        assert text.endswith("\n")

    def test_section_lookup(self):
        report = WorkflowReport('demo')
        report.add('Only', 'text')
        assert report.section('Only') == 'text'
        with pytest.raises(KeyError, match="no section"):
            report.section('Missing')

    def test_format_frame_digits(self):
        frame = pd.DataFrame({'x': [3.14159265, 2718.28]})
        text = format_frame(frame, digits=3)
        assert '3.14' in text and '2.72e+03' in text
