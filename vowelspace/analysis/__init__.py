"""Descriptive statistics, Bayesian models and posterior summaries."""

from .bayes_models import (
    FAMILIES,
    ConvergenceDiagnostics,
    ConvergenceError,
    ConvergenceWarning,
    FittedModel,
    McmcConfig,
    ModelDesign,
    ModelSpec,
    PosteriorSampler,
    PriorSpec,
    PyMCSampler,
    build_design,
    default_model_specs,
    diagnose_convergence,
    fit_model,
    fit_or_load,
    load_fitted,
    save_fitted,
)
from .descriptive_statistics import (
    compute_vowel_space_areas,
    describe_measures,
    grouped_summary,
    paired_condition_differences,
    paired_difference_ttest,
)
from .posterior_summary import (
    posterior_draws,
    posterior_probability,
    prob_negative,
    prob_positive,
    summarize_coefficients,
)

__all__ = [
    "FAMILIES",
    "ConvergenceDiagnostics",
    "ConvergenceError",
    "ConvergenceWarning",
    "FittedModel",
    "McmcConfig",
    "ModelDesign",
    "ModelSpec",
    "PosteriorSampler",
    "PriorSpec",
    "PyMCSampler",
    "build_design",
    "default_model_specs",
    "diagnose_convergence",
    "fit_model",
    "fit_or_load",
    "load_fitted",
    "save_fitted",
    "compute_vowel_space_areas",
    "describe_measures",
    "grouped_summary",
    "paired_condition_differences",
    "paired_difference_ttest",
    "posterior_draws",
    "posterior_probability",
    "prob_negative",
    "prob_positive",
    "summarize_coefficients",
]
