"""
Regression solution types.

Contains the parameter payloads computed by backends and the
user-facing solution wrappers for linear models and GLMs.
"""

from __future__ import annotations

import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Literal, TYPE_CHECKING
import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy import stats

from pyregselect.core.datasource import DataSource
from pyregselect.core.exceptions import ValidationError
from pyregselect.core.result import Result
from pyregselect.core.validation import check_array
from pyregselect.regression._format import (
    SIGNIF_LEGEND,
    format_number,
    format_pvalue,
    format_table,
    quantile_line,
)

if TYPE_CHECKING:
    from pyregselect.formula import Formula
    from pyregselect.regression.design import Design
    from pyregselect.regression.families import Family


@dataclass(frozen=True)
class LinearParams:
    """
    Parameter payload for linear regression.

    This is the immutable data computed by backends. `tss` is about
    the mean when the model has an intercept and about zero otherwise,
    as in summary.lm.
    """
    coefficients: NDArray[np.floating[Any]]
    residuals: NDArray[np.floating[Any]]
    fitted_values: NDArray[np.floating[Any]]
    rss: float
    tss: float
    rank: int
    df_residual: int
    unscaled_covariance: NDArray[np.floating[Any]]
    hat_values: NDArray[np.floating[Any]]


@dataclass(frozen=True)
class GLMParams:
    """
    Parameter payload for a GLM fitted by IRLS.

    `weights` are the working weights of the final iteration and
    `unscaled_covariance` is (X'WX)^-1 at those weights.
    """
    coefficients: NDArray[np.floating[Any]]
    fitted_values: NDArray[np.floating[Any]]
    linear_predictor: NDArray[np.floating[Any]]
    residuals_working: NDArray[np.floating[Any]]
    residuals_deviance: NDArray[np.floating[Any]]
    residuals_pearson: NDArray[np.floating[Any]]
    residuals_response: NDArray[np.floating[Any]]
    weights: NDArray[np.floating[Any]]
    deviance: float
    null_deviance: float
    aic: float
    dispersion: float
    rank: int
    df_residual: int
    df_null: int
    n_iter: int
    converged: bool
    family_name: str
    link_name: str
    unscaled_covariance: NDArray[np.floating[Any]]
    hat_values: NDArray[np.floating[Any]]


@dataclass
class _ModelSolution(ABC):
    """Accessors shared by linear and generalized linear fits."""
    _result: Result[Any]
    _design: 'Design'

    # --- coefficients ---

    @property
    def coefficients(self) -> NDArray[np.floating[Any]]:
        return self._result.params.coefficients

    @property
    def names(self) -> tuple[str, ...]:
        """Coefficient names: model-matrix column names."""
        return self._design.column_names

    @property
    def coef(self) -> pd.Series:
        """Coefficients as a Series indexed by name (NaN = aliased)."""
        return pd.Series(self.coefficients, index=list(self.names), name='Estimate')

    @property
    def aliased(self) -> tuple[str, ...]:
        return tuple(n for n, b in zip(self.names, self.coefficients) if np.isnan(b))

    @property
    @abstractmethod
    def dispersion(self) -> float:
        ...

    def vcov(self) -> pd.DataFrame:
        """Coefficient covariance matrix (rows and columns of aliased terms are NaN)."""
        cov = self.dispersion * self._result.params.unscaled_covariance
        return pd.DataFrame(cov, index=list(self.names), columns=list(self.names))

    @property
    def standard_errors(self) -> NDArray[np.floating[Any]]:
        """SE(β) = sqrt(diag(φ (X'WX)⁻¹)); NaN for aliased coefficients."""
        diag = np.diag(self._result.params.unscaled_covariance)
        with np.errstate(invalid='ignore'):
            return np.sqrt(self.dispersion * diag)

    @property
    def statistics(self) -> NDArray[np.floating[Any]]:
        """Wald statistics β / SE(β)."""
        with np.errstate(divide='ignore', invalid='ignore'):
            t = self.coefficients / self.standard_errors
        return np.where(np.isfinite(t), t, np.nan)

    @property
    def p_values(self) -> NDArray[np.floating[Any]]:
        stat = np.abs(self.statistics)
        if self._uses_t:
            return 2.0 * stats.t.sf(stat, self.df_residual)
        return 2.0 * stats.norm.sf(stat)

    @property
    def _uses_t(self) -> bool:
        return True

    @property
    def _stat_label(self) -> str:
        return 't' if self._uses_t else 'z'

    def coef_table(self) -> pd.DataFrame:
        """Estimate, Std. Error, statistic and p-value per coefficient."""
        s = self._stat_label
        return pd.DataFrame(
            {
                'Estimate': self.coefficients,
                'Std. Error': self.standard_errors,
                f'{s} value': self.statistics,
                f'Pr(>|{s}|)': self.p_values,
            },
            index=list(self.names),
        )

    def confint(self, level: float = 0.95) -> pd.DataFrame:
        """
        Confidence intervals for the coefficients.

        t-based for linear models and GLMs with estimated dispersion
        (confint.lm), normal-based Wald intervals otherwise
        (confint.default).
        """
        _check_level(level)
        a = (1.0 - level) / 2.0
        if self._uses_t and self.df_residual > 0:
            q = stats.t.ppf(1.0 - a, self.df_residual)
        else:
            q = stats.norm.ppf(1.0 - a)
        half = q * self.standard_errors
        lo, hi = _percent_labels(level)
        return pd.DataFrame(
            {lo: self.coefficients - half, hi: self.coefficients + half},
            index=list(self.names),
        )

    # --- fit ---

    @property
    def fitted_values(self) -> NDArray[np.floating[Any]]:
        return self._result.params.fitted_values

    @property
    def hat_values(self) -> NDArray[np.floating[Any]]:
        """Diagonal of the (weighted) hat matrix."""
        return self._result.params.hat_values

    @property
    def rank(self) -> int:
        return self._result.params.rank

    @property
    def df_residual(self) -> int:
        return self._result.params.df_residual

    @property
    def nobs(self) -> int:
        return self._design.n

    @property
    def n_dropped(self) -> int:
        return self._design.n_dropped

    @property
    @abstractmethod
    def log_likelihood(self) -> float:
        ...

    @property
    @abstractmethod
    def df_loglik(self) -> int:
        """Parameter count used by logLik (coefficients plus any dispersion)."""
        ...

    @property
    def aic(self) -> float:
        return -2.0 * self.log_likelihood + 2.0 * self.df_loglik

    @property
    def bic(self) -> float:
        return -2.0 * self.log_likelihood + np.log(self.nobs) * self.df_loglik

    # --- provenance ---

    @property
    def design(self) -> 'Design':
        return self._design

    @property
    def formula(self) -> 'Formula | None':
        return self._design.formula

    @property
    def term_labels(self) -> tuple[str, ...]:
        return self._design.term_labels

    @property
    def y(self) -> NDArray[np.floating[Any]]:
        return self._design.y

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    # --- prediction ---

    def _new_matrix(self, newdata: Any) -> NDArray[np.floating[Any]]:
        """Encode new data with the fit's Encoding (or take a raw matrix)."""
        design = self._design
        if design.encoding is None:
            X = check_array(newdata, 'newdata')
            if X.ndim == 1:
                X = X.reshape(1, -1) if X.shape[0] == design.p else X.reshape(-1, 1)
            if X.ndim != 2 or X.shape[1] != design.p:
                raise ValidationError(
                    f"newdata: expected {design.p} columns, got shape {X.shape}"
                )
            return X
        X, _ = design.encoding.encode_new(_as_source(newdata))
        if self.aliased:
            warnings.warn(
                "prediction from a rank-deficient fit may be misleading",
                RuntimeWarning,
                stacklevel=3,
            )
        return X

    def _linear_predictor(self, X: NDArray[np.floating[Any]]) -> NDArray[np.floating[Any]]:
        beta = np.where(np.isnan(self.coefficients), 0.0, self.coefficients)
        return X @ beta

    def _coef_section(self) -> list[str]:
        lines = ["Coefficients:"]
        n_aliased = len(self.aliased)
        if n_aliased:
            lines[0] = (
                f"Coefficients: ({n_aliased} not defined because of singularities)"
            )
        s = self._stat_label
        lines.extend(format_table(self.coef_table(), pvalue_columns=(f'Pr(>|{s}|)',)))
        lines.append("---")
        lines.append(SIGNIF_LEGEND)
        return lines

    def _call(self, fn: str, extra: str = '') -> str:
        formula = self.formula
        text = str(formula) if formula is not None else f"{self._design.response_name} ~ X"
        return f"{fn}(formula = {text}{extra})"


@dataclass
class LinearSolution(_ModelSolution):
    """
    User-facing linear regression results (R's lm object plus summary.lm).

    Wraps the backend Result and provides coefficients with standard
    errors and t tests, goodness of fit, intervals and prediction.
    """
    _result: Result[LinearParams]

    @property
    def residuals(self) -> NDArray[np.floating[Any]]:
        return self._result.params.residuals

    @property
    def rss(self) -> float:
        return self._result.params.rss

    @property
    def tss(self) -> float:
        return self._result.params.tss

    @property
    def deviance(self) -> float:
        """deviance(lm) is the residual sum of squares."""
        return self.rss

    @property
    def dispersion(self) -> float:
        """σ² = RSS / df_residual."""
        df = self.df_residual
        return self.rss / df if df > 0 else float('nan')

    @property
    def r_squared(self) -> float:
        mss = self.tss - self.rss
        if self.tss == 0:
            return 1.0 if self.rss == 0 else 0.0
        return mss / self.tss

    @property
    def adjusted_r_squared(self) -> float:
        df_int = 1 if self._design.has_intercept else 0
        if self.df_residual <= 0:
            return float('nan')
        return 1.0 - (1.0 - self.r_squared) * (self.nobs - df_int) / self.df_residual

    @property
    def residual_std_error(self) -> float:
        return float(np.sqrt(self.dispersion))

    sigma = residual_std_error

    @property
    def f_statistic(self) -> tuple[float, int, int]:
        """(F, numerator df, denominator df) for the overall regression."""
        df_int = 1 if self._design.has_intercept else 0
        numdf = self.rank - df_int
        dendf = self.df_residual
        if numdf <= 0 or dendf <= 0:
            return float('nan'), numdf, dendf
        F = ((self.tss - self.rss) / numdf) / (self.rss / dendf)
        return float(F), numdf, dendf

    @property
    def f_p_value(self) -> float:
        F, numdf, dendf = self.f_statistic
        if np.isnan(F):
            return float('nan')
        return float(stats.f.sf(F, numdf, dendf))

    @property
    def df_loglik(self) -> int:
        return self.rank + 1

    @property
    def log_likelihood(self) -> float:
        """logLik.lm: -n/2 (log(2π RSS/n) + 1)."""
        n = self.nobs
        return -0.5 * n * (np.log(2.0 * np.pi * self.rss / n) + 1.0)

    def predict(
        self,
        newdata: Any = None,
        interval: Literal['confidence', 'prediction'] | None = None,
        level: float = 0.95,
    ) -> NDArray[np.floating[Any]] | pd.DataFrame:
        """
        Predicted values, optionally with confidence or prediction intervals.

        Args:
            newdata: DataSource, DataFrame or dict of columns (or a matrix
                for array fits). None predicts on the fitting data.
            interval: None, 'confidence' or 'prediction'
            level: Interval coverage

        Returns:
            Array of predictions, or a DataFrame with fit/lwr/upr columns
            when an interval is requested. Rows with missing predictors
            are NaN.

        Raises:
            ValidationError: On an unknown interval type or a factor level
                absent from the fit
        """
        if interval not in (None, 'confidence', 'prediction'):
            raise ValidationError(
                f"interval: expected None, 'confidence' or 'prediction', got {interval!r}"
            )
        if newdata is None:
            X0 = self._design.X
            fit = self.fitted_values.copy()
        else:
            X0 = self._new_matrix(newdata)
            fit = self._linear_predictor(X0)
        if interval is None:
            return fit

        _check_level(level)
        active = ~np.isnan(self.coefficients)
        V = self._result.params.unscaled_covariance[np.ix_(active, active)] * self.dispersion
        Xa = X0[:, active]
        se_fit = np.sqrt(np.einsum('ij,jk,ik->i', Xa, V, Xa))
        q = stats.t.ppf((1.0 + level) / 2.0, self.df_residual)
        if interval == 'confidence':
            half = q * se_fit
        else:
            half = q * np.sqrt(se_fit ** 2 + self.dispersion)
        return pd.DataFrame({'fit': fit, 'lwr': fit - half, 'upr': fit + half})

    def summary(self) -> str:
        """R-style summary.lm output."""
        lines = ["", "Call:", self._call('lm'), "", "Residuals:"]
        if self.nobs > 5:
            lines.extend(quantile_line(self.residuals))
        else:
            lines.append(' '.join(format_number(r) for r in self.residuals))
        lines.append("")
        lines.extend(self._coef_section())
        lines.append("")
        lines.append(
            f"Residual standard error: {format_number(self.residual_std_error)} "
            f"on {self.df_residual} degrees of freedom"
        )
        if self.n_dropped:
            lines.append(f"  ({self.n_dropped} observations deleted due to missingness)")
        F, numdf, dendf = self.f_statistic
        if not np.isnan(F):
            lines.append(
                f"Multiple R-squared:  {format_number(self.r_squared)},\t"
                f"Adjusted R-squared:  {format_number(self.adjusted_r_squared)} "
            )
            p = self.f_p_value
            p_text = "< 2.2e-16" if p < 2.2e-16 else format_pvalue(p, 4)
            lines.append(
                f"F-statistic: {format_number(F)} on {numdf} and {dendf} DF,  p-value: {p_text}"
            )
        lines.append("")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"LinearSolution(n={self.nobs}, p={self._design.p}, "
            f"rank={self.rank}, r_squared={self.r_squared:.4f})"
        )


@dataclass
class GLMSolution(_ModelSolution):
    """
    User-facing GLM results (R's glm object plus summary.glm).
    """
    _result: Result[GLMParams]

    @property
    def family(self) -> 'Family':
        from pyregselect.regression.families import resolve_family
        params = self._result.params
        return resolve_family(params.family_name, params.link_name)

    @property
    def family_name(self) -> str:
        return self._result.params.family_name

    @property
    def link_name(self) -> str:
        return self._result.params.link_name

    @property
    def linear_predictor(self) -> NDArray[np.floating[Any]]:
        return self._result.params.linear_predictor

    @property
    def residuals(self) -> NDArray[np.floating[Any]]:
        """Deviance residuals (the default of residuals.glm)."""
        return self._result.params.residuals_deviance

    @property
    def residuals_deviance(self) -> NDArray[np.floating[Any]]:
        return self._result.params.residuals_deviance

    @property
    def residuals_pearson(self) -> NDArray[np.floating[Any]]:
        return self._result.params.residuals_pearson

    @property
    def residuals_working(self) -> NDArray[np.floating[Any]]:
        return self._result.params.residuals_working

    @property
    def residuals_response(self) -> NDArray[np.floating[Any]]:
        return self._result.params.residuals_response

    def resid(self, type: str = 'deviance') -> NDArray[np.floating[Any]]:
        """Residuals of the given type: deviance, pearson, working or response."""
        lookup = {
            'deviance': self.residuals_deviance,
            'pearson': self.residuals_pearson,
            'working': self.residuals_working,
            'response': self.residuals_response,
        }
        if type not in lookup:
            raise ValidationError(
                f"type: expected one of {sorted(lookup)}, got {type!r}"
            )
        return lookup[type]

    @property
    def weights(self) -> NDArray[np.floating[Any]]:
        """Working weights of the final IRLS iteration."""
        return self._result.params.weights

    @property
    def deviance(self) -> float:
        return self._result.params.deviance

    @property
    def null_deviance(self) -> float:
        return self._result.params.null_deviance

    @property
    def df_null(self) -> int:
        return self._result.params.df_null

    @property
    def dispersion(self) -> float:
        return self._result.params.dispersion

    @property
    def converged(self) -> bool:
        return self._result.params.converged

    @property
    def n_iter(self) -> int:
        return self._result.params.n_iter

    @property
    def _uses_t(self) -> bool:
        return self.family_name == 'gaussian'

    @property
    def df_loglik(self) -> int:
        return self.rank + (1 if self._uses_t else 0)

    @property
    def aic(self) -> float:
        return self._result.params.aic

    @property
    def log_likelihood(self) -> float:
        """logLik.glm: df - AIC/2."""
        return self.df_loglik - self.aic / 2.0

    def odds_ratios(self, level: float = 0.95) -> pd.DataFrame:
        """
        exp(β) with exponentiated Wald intervals.

        Raises:
            ValidationError: Unless the model is binomial with a logit link
        """
        if self.family_name != 'binomial' or self.link_name != 'logit':
            raise ValidationError(
                f"odds ratios need a binomial logit model, "
                f"got {self.family_name}/{self.link_name}"
            )
        ci = np.exp(self.confint(level))
        ci.insert(0, 'OR', np.exp(self.coefficients))
        return ci

    def predict(
        self,
        newdata: Any = None,
        type: Literal['link', 'response'] = 'link',
    ) -> NDArray[np.floating[Any]]:
        """
        Predictions on the link or response scale.

        Rows of `newdata` with missing predictors give NaN.

        Raises:
            ValidationError: On an unknown type or a factor level absent
                from the fit
        """
        if type not in ('link', 'response'):
            raise ValidationError(f"type: expected 'link' or 'response', got {type!r}")
        if newdata is None:
            return (self.linear_predictor if type == 'link' else self.fitted_values).copy()
        eta = self._linear_predictor(self._new_matrix(newdata))
        if type == 'link':
            return eta
        return self.family.link.linkinv(eta)

    def summary(self) -> str:
        """R-style summary.glm output."""
        family = self.family_name
        extra = f", family = {family}"
        if self.link_name != self.family._default_link().name:
            extra = f', family = {family}(link = "{self.link_name}")'
        lines = ["", "Call:", self._call('glm', extra), ""]
        lines.extend(self._coef_section())
        lines.append("")
        if self._uses_t:
            lines.append(
                f"(Dispersion parameter for {family} family taken to be "
                f"{format_number(self.dispersion, 6)})"
            )
        else:
            lines.append(f"(Dispersion parameter for {family} family taken to be 1)")
        lines.append("")
        lines.append(
            f"    Null deviance: {self.null_deviance:.2f}  on {self.df_null}  degrees of freedom"
        )
        lines.append(
            f"Residual deviance: {self.deviance:.2f}  on {self.df_residual}  degrees of freedom"
        )
        if self.n_dropped:
            lines.append(f"  ({self.n_dropped} observations deleted due to missingness)")
        lines.append(f"AIC: {format_number(self.aic, 5)}")
        lines.append("")
        lines.append(f"Number of Fisher Scoring iterations: {self.n_iter}")
        if not self.converged:
            lines.append("Warning: IRLS did not converge")
        lines.append("")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"GLMSolution(family={self.family_name}, link={self.link_name}, "
            f"n={self.nobs}, p={self._design.p}, deviance={self.deviance:.4f}, "
            f"converged={self.converged})"
        )


def _as_source(newdata: Any) -> DataSource:
    if isinstance(newdata, DataSource):
        return newdata
    if isinstance(newdata, pd.DataFrame):
        return DataSource.from_dataframe(newdata)
    if isinstance(newdata, dict):
        return DataSource.from_dataframe(pd.DataFrame(newdata))
    raise ValidationError(
        f"newdata: expected a DataSource, DataFrame or dict, got {type(newdata).__name__}"
    )


def _check_level(level: float) -> None:
    if not 0.0 < level < 1.0:
        raise ValidationError(f"level: must be in (0, 1), got {level}")


def _percent_labels(level: float) -> tuple[str, str]:
    """Column labels of confint(): '2.5 %' and '97.5 %' for level 0.95."""
    a = (1.0 - level) / 2.0
    return f"{100 * a:.3g} %", f"{100 * (1 - a):.3g} %"
