"""
Posterior summaries for fitted vowel models.

Directional probabilities use a strict inequality: P(effect < 0) is the
share of draws strictly below zero, and P(effect > 0) is its complement,
so a draw exactly equal to zero counts towards the positive side.
"""

from __future__ import annotations

from typing import Iterable, Optional, Union

import arviz as az
import numpy as np
import pandas as pd

from vowelspace.analysis.bayes_models import FittedModel

DIRECTIONS = ("positive", "negative")


def posterior_draws(fitted: Union[FittedModel, az.InferenceData]) -> pd.DataFrame:
    """One row per MCMC draw (chains stacked), one column per fixed-effect coefficient."""
    idata = fitted.idata if isinstance(fitted, FittedModel) else fitted
    posterior = idata.posterior
    draws = pd.DataFrame({"Intercept": posterior["Intercept"].values.reshape(-1)})
    if "beta" in posterior:
        beta = posterior["beta"].transpose("chain", "draw", "term")
        terms = [str(t) for t in beta.coords["term"].values]
        values = beta.values.reshape(-1, len(terms))
        draws = pd.concat([draws, pd.DataFrame(values, columns=terms)], axis=1)
    return draws


def prob_negative(draws: Iterable[float]) -> float:
    """Share of draws strictly below zero."""
    if not hasattr(draws, "__len__"):
        draws = list(draws)
    values = np.asarray(draws, dtype=float).ravel()
    if values.size == 0:
        raise ValueError("No posterior draws supplied")
    return float(np.mean(values < 0))


def prob_positive(draws: Iterable[float]) -> float:
    """1 - P(draw < 0)."""
    return 1.0 - prob_negative(draws)


def posterior_probability(
    fitted: Union[FittedModel, az.InferenceData],
    term: str,
    direction: str = "positive",
) -> float:
    """Posterior probability that ``term`` is positive (or negative)."""
    if direction not in DIRECTIONS:
        raise ValueError(f"direction must be one of {DIRECTIONS}")
    draws = posterior_draws(fitted)
    if term not in draws.columns:
        raise KeyError(f"Unknown coefficient '{term}'. Available: {list(draws.columns)}")
    if direction == "negative":
        return prob_negative(draws[term])
    return prob_positive(draws[term])


def summarize_coefficients(
    fitted: Union[FittedModel, az.InferenceData],
    hdi_prob: float = 0.95,
    terms: Optional[Iterable[str]] = None,
) -> pd.DataFrame:
    """Mean, SD, HDI and directional probabilities per coefficient."""
    draws = posterior_draws(fitted)
    selected = list(terms) if terms is not None else list(draws.columns)
    low_col = f"hdi_{(1 - hdi_prob) / 2 * 100:g}%"
    high_col = f"hdi_{(1 + hdi_prob) / 2 * 100:g}%"
    rows = []
    for term in selected:
        values = draws[term].to_numpy()
        low, high = az.hdi(values, hdi_prob=hdi_prob)
        rows.append({
            "term": term,
            "mean": float(values.mean()),
            "sd": float(values.std(ddof=1)),
            low_col: float(low),
            high_col: float(high),
            "p_positive": prob_positive(values),
            "p_negative": prob_negative(values),
        })
    out = pd.DataFrame(rows)
    if isinstance(fitted, FittedModel):
        out.insert(0, "family", fitted.spec.family)
        out.insert(0, "model", fitted.name)
    return out
