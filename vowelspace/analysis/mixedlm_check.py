"""
Frequentist cross-check of the Bayesian models (statsmodels MixedLM).

Fits the same fixed effects with by-subject random intercepts and
condition slopes, stepping down to intercept-only and to an alternative
optimiser when a fit fails or does not converge. Item effects are left
out: MixedLM cannot cross them with subjects.
"""

from __future__ import annotations

import warnings
from typing import NamedTuple, Sequence

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from statsmodels.tools.sm_exceptions import ConvergenceWarning

from vowelspace.analysis.bayes_models import ModelSpec
from vowelspace.preprocessing.constants import SUBJECT_COL

ATTEMPTS = [
    {"re_formula": "1 + condition_coded", "method": "lbfgs"},
    {"re_formula": "1 + condition_coded", "method": "powell"},
    {"re_formula": "1", "method": "lbfgs"},
    {"re_formula": "1", "method": "powell"},
]
MAXITER = 500


class MixedLMFit(NamedTuple):
    result: object
    attempt: dict[str, str]
    warnings: list[str]

    @property
    def clean(self) -> bool:
        return bool(getattr(self.result, "converged", False)) and not self.warnings


def _fit_attempt(df: pd.DataFrame, formula: str, attempt: dict[str, str]) -> MixedLMFit:
    """One ML fit grouped by subject; statsmodels convergence warnings are collected, not shown."""
    model = smf.mixedlm(formula, data=df, groups=SUBJECT_COL, re_formula=attempt["re_formula"])
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", ConvergenceWarning)
        result = model.fit(reml=False, method=attempt["method"], maxiter=MAXITER)
    messages = sorted({str(w.message) for w in caught if issubclass(w.category, ConvergenceWarning)})
    return MixedLMFit(result, attempt, messages)


def fit_with_fallback(
    df: pd.DataFrame,
    formula: str,
    attempts: Sequence[dict[str, str]] = ATTEMPTS,
) -> MixedLMFit:
    """First clean fit in ``attempts`` order, else the last one that ran at all."""
    errors: list[str] = []
    last = None
    for attempt in attempts:
        try:
            last = _fit_attempt(df, formula, attempt)
        except (ValueError, np.linalg.LinAlgError) as exc:
            errors.append(f"{attempt['re_formula']}/{attempt['method']}: {exc}")
            continue
        if last.clean:
            return last
    if last is None:
        raise RuntimeError(f"MixedLM failed for '{formula}': {'; '.join(errors)}")
    return last


def fit_mixedlm_check(data: pd.DataFrame, spec: ModelSpec, verbose: bool = True) -> pd.DataFrame:
    """Fixed-effect estimates for ``spec`` from a maximum-likelihood MixedLM."""
    df = data.dropna(subset=[spec.outcome, SUBJECT_COL]).copy()
    if spec.family == "lognormal":
        if (df[spec.outcome] <= 0).any():
            raise ValueError(f"MixedLM {spec.name}: log-normal family needs a positive outcome")
        outcome = f"np.log({spec.outcome})"
    else:
        outcome = spec.outcome
    formula = f"{outcome} ~ {spec.fixed_formula}"

    fit = fit_with_fallback(df, formula)
    result, attempt = fit.result, fit.attempt
    converged = bool(getattr(result, "converged", False))
    if verbose:
        status = "[OK]" if fit.clean else "[WARN]"
        print(
            f"  {status} MixedLM {spec.name}: re_formula='{attempt['re_formula']}', "
            f"method={attempt['method']}, converged={converged}, warnings={len(fit.warnings)}"
        )

    fe_names = list(result.fe_params.index)
    conf = result.conf_int().loc[fe_names]
    return pd.DataFrame({
        "model": spec.name,
        "family": spec.family,
        "term": fe_names,
        "beta": result.fe_params.to_numpy(),
        "se": result.bse.loc[fe_names].to_numpy(),
        "z": result.tvalues.loc[fe_names].to_numpy(),
        "p": result.pvalues.loc[fe_names].to_numpy(),
        "ci_low": conf.iloc[:, 0].to_numpy(),
        "ci_high": conf.iloc[:, 1].to_numpy(),
        "re_formula": attempt["re_formula"],
        "method": attempt["method"],
        "converged": converged,
        "warning_msg": " | ".join(fit.warnings),
    })
