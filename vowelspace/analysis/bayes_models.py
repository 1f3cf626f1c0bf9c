"""
Bayesian mixed-effects models of duration and vowel-space dispersion
====================================================================

Models (PyMC, NUTS):
- duration_ms    ~ condition_coded * gender_coded + C(vowel)
                   + (1 + condition_coded | subject) + (1 | item_id)
- euclidean_dist ~ condition_coded * gender_coded + C(vowel) + duration_ms
                   + (1 + condition_coded | subject) + (1 | item_id)

each under a normal (identity link) and a log-normal outcome family.

Priors:
- Normal(0, 100) on every fixed-effect coefficient.
- Intercept, group-level SDs and the residual SD are scaled to the outcome
  on the link scale unless given explicitly.
- Subject intercept/slope correlation: LKJ(eta=2).

Fitted models are written to <models_dir>/<name>.nc (compressed NetCDF) and
reloaded on later runs when the spec, the input data and the MCMC settings
all match, unless a refit is requested.

Usage:
    from vowelspace.analysis import bayes_models
    fitted = bayes_models.fit_or_load(derived, spec, McmcConfig(chains=4, cores=4))
"""

from __future__ import annotations

import hashlib
import json
import warnings
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence

import arviz as az
import numpy as np
import pandas as pd
import patsy

from vowelspace.preprocessing.constants import (
    DEFAULT_CHAINS,
    DEFAULT_FIXED_EFFECT_PRIOR_SD,
    DEFAULT_ITERATIONS,
    DEFAULT_RANDOM_SEED,
    DEFAULT_TARGET_ACCEPT,
    DEFAULT_WARMUP,
    DURATION_COL,
    ITEM_ID_COL,
    MAX_RHAT,
    MIN_ESS,
    SUBJECT_COL,
    default_cores,
)
from vowelspace.preprocessing.core import EmptyDatasetError, SchemaError

FAMILIES = ("normal", "lognormal")
FIXED_BASE = "condition_coded * gender_coded + C(vowel)"
DIAGNOSTIC_VARS = ["Intercept", "beta", "sigma", "sd_item", "sd_subject", "subject_chol_stds"]


class ConvergenceWarning(UserWarning):
    """Sampler finished but failed the convergence checks."""


class ConvergenceError(RuntimeError):
    """Sampler failed the convergence checks; the fitted model is attached."""

    def __init__(self, message: str, diagnostics: "ConvergenceDiagnostics", fitted: "FittedModel | None" = None):
        super().__init__(message)
        self.diagnostics = diagnostics
        self.fitted = fitted


# =============================================================================
# SPECIFICATIONS
# =============================================================================

@dataclass(frozen=True)
class PriorSpec:
    """Prior scales; None means 'derive from the outcome on the link scale'."""
    b_sd: float = DEFAULT_FIXED_EFFECT_PRIOR_SD
    intercept_mu: Optional[float] = None
    intercept_sd: Optional[float] = None
    group_sd_scale: Optional[float] = None
    sigma_scale: Optional[float] = None
    lkj_eta: float = 2.0

    def resolve(self, y_link: np.ndarray) -> "PriorSpec":
        center = float(np.mean(y_link))
        spread = float(np.std(y_link, ddof=1)) if len(y_link) > 1 else np.nan
        if not np.isfinite(spread) or spread <= 0:
            spread = 1.0
        return replace(
            self,
            intercept_mu=center if self.intercept_mu is None else self.intercept_mu,
            intercept_sd=2.5 * spread if self.intercept_sd is None else self.intercept_sd,
            group_sd_scale=spread if self.group_sd_scale is None else self.group_sd_scale,
            sigma_scale=spread if self.sigma_scale is None else self.sigma_scale,
        )


@dataclass(frozen=True)
class ModelSpec:
    """
    Outcome, fixed effects (patsy right-hand side, implicit intercept kept),
    random structure and outcome family of one model.
    """
    name: str
    outcome: str
    fixed_formula: str
    family: str = "normal"
    prior: PriorSpec = field(default_factory=PriorSpec)
    subject_slope: Optional[str] = "condition_coded"
    item_intercept: bool = True

    def __post_init__(self) -> None:
        if self.family not in FAMILIES:
            raise ValueError(f"Unknown family: {self.family}. Valid families: {FAMILIES}")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict) -> "ModelSpec":
        payload = dict(payload)
        prior = PriorSpec(**payload.pop("prior", {}))
        return cls(prior=prior, **payload)


@dataclass
class McmcConfig:
    """MCMC control; ``iterations`` counts warmup, so draws = iterations - warmup."""
    chains: int = DEFAULT_CHAINS
    cores: Optional[int] = None
    random_seed: int = DEFAULT_RANDOM_SEED
    warmup: int = DEFAULT_WARMUP
    iterations: int = DEFAULT_ITERATIONS
    target_accept: float = DEFAULT_TARGET_ACCEPT
    max_divergences: int = 0
    min_ess: float = MIN_ESS
    max_rhat: float = MAX_RHAT
    retry_target_accept: Optional[float] = None
    progressbar: bool = False

    def __post_init__(self) -> None:
        if self.cores is None:
            self.cores = default_cores(self.chains)
        if self.chains < 1:
            raise ValueError("chains must be >= 1")
        if self.iterations <= self.warmup:
            raise ValueError(
                f"iterations ({self.iterations}) must exceed warmup ({self.warmup})"
            )
        if not 0.0 < self.target_accept < 1.0:
            raise ValueError("target_accept must lie in (0, 1)")

    @property
    def draws(self) -> int:
        return self.iterations - self.warmup

    def sampling_key(self) -> dict:
        """Settings that change the draws; cores and progress display do not."""
        return {
            "chains": self.chains,
            "random_seed": self.random_seed,
            "warmup": self.warmup,
            "iterations": self.iterations,
            "target_accept": self.target_accept,
            "retry_target_accept": self.retry_target_accept,
        }


def default_model_specs(
    families: Sequence[str] = FAMILIES,
    prior: Optional[PriorSpec] = None,
) -> List[ModelSpec]:
    """Duration and Euclidean-distance models under each requested family."""
    prior = prior or PriorSpec()
    specs = []
    for family in families:
        specs.append(
            ModelSpec(
                name=f"duration_{family}",
                outcome=DURATION_COL,
                fixed_formula=FIXED_BASE,
                family=family,
                prior=prior,
            )
        )
        specs.append(
            ModelSpec(
                name=f"euclidean_{family}",
                outcome="euclidean_dist",
                fixed_formula=f"{FIXED_BASE} + {DURATION_COL}",
                family=family,
                prior=prior,
            )
        )
    return specs


# =============================================================================
# DESIGN
# =============================================================================

@dataclass
class ModelDesign:
    spec: ModelSpec
    y: np.ndarray
    X: pd.DataFrame
    subject_idx: np.ndarray
    subjects: List[str]
    item_idx: np.ndarray
    items: List[str]
    slope: Optional[np.ndarray]
    prior: PriorSpec

    @property
    def terms(self) -> List[str]:
        return list(self.X.columns)

    @property
    def n_obs(self) -> int:
        return int(len(self.y))

    def fingerprint(self) -> str:
        """Row count plus a hash of the outcome, fixed effects and group labels."""
        digest = hashlib.sha256()
        digest.update(np.ascontiguousarray(self.y, dtype=float).tobytes())
        digest.update(np.ascontiguousarray(self.X.to_numpy(dtype=float)).tobytes())
        digest.update("|".join(self.terms).encode("utf-8"))
        digest.update("|".join(self.subjects[i] for i in self.subject_idx).encode("utf-8"))
        digest.update("|".join(self.items[i] for i in self.item_idx).encode("utf-8"))
        return f"{self.n_obs}:{digest.hexdigest()[:16]}"


def build_design(data: pd.DataFrame, spec: ModelSpec) -> ModelDesign:
    """Turn a derived token table into arrays for the sampler."""
    required = [spec.outcome, SUBJECT_COL, ITEM_ID_COL]
    if spec.subject_slope:
        required.append(spec.subject_slope)
    missing = [c for c in required if c not in data.columns]
    if missing:
        raise SchemaError(f"Model '{spec.name}' needs missing column(s): {', '.join(missing)}")

    df = data.dropna(subset=required)
    if df.empty:
        raise EmptyDatasetError(f"Model '{spec.name}': no complete rows for {required}")

    try:
        X = patsy.dmatrix(spec.fixed_formula, df, return_type="dataframe")
    except patsy.PatsyError as exc:
        raise SchemaError(f"Model '{spec.name}': cannot build '{spec.fixed_formula}': {exc}") from exc
    df = df.loc[X.index]
    X = X.drop(columns=["Intercept"], errors="ignore")

    y = df[spec.outcome].to_numpy(dtype=float)
    if spec.family == "lognormal":
        if (y <= 0).any():
            raise ValueError(f"Model '{spec.name}': log-normal family needs a positive outcome")
        y_link = np.log(y)
    else:
        y_link = y

    subjects = pd.Categorical(df[SUBJECT_COL].astype(str))
    items = pd.Categorical(df[ITEM_ID_COL].astype(str))
    slope = df[spec.subject_slope].to_numpy(dtype=float) if spec.subject_slope else None

    return ModelDesign(
        spec=spec,
        y=y,
        X=X.reset_index(drop=True),
        subject_idx=subjects.codes.astype(int),
        subjects=[str(s) for s in subjects.categories],
        item_idx=items.codes.astype(int),
        items=[str(i) for i in items.categories],
        slope=slope,
        prior=spec.prior.resolve(y_link),
    )


# =============================================================================
# SAMPLERS
# =============================================================================

class PosteriorSampler(Protocol):
    """Anything that turns a design and MCMC settings into posterior draws."""

    def sample(self, design: ModelDesign, config: McmcConfig) -> az.InferenceData:
        ...


class PyMCSampler:
    """NUTS via PyMC with non-centred group effects."""

    def build_model(self, design: ModelDesign):
        import pymc as pm

        prior = design.prior
        coords: Dict[str, list] = {
            "subject": design.subjects,
            "item": design.items,
        }
        if design.terms:
            coords["term"] = design.terms
        if design.slope is not None:
            coords["effect"] = ["Intercept", design.spec.subject_slope]

        X = design.X.to_numpy(dtype=float)
        subj = design.subject_idx
        item = design.item_idx

        with pm.Model(coords=coords) as model:
            intercept = pm.Normal("Intercept", mu=prior.intercept_mu, sigma=prior.intercept_sd)
            mu = intercept
            if design.terms:
                beta = pm.Normal("beta", mu=0.0, sigma=prior.b_sd, dims="term")
                mu = mu + pm.math.dot(X, beta)

            # Subject intercepts (+ correlated slopes)
            if design.slope is not None:
                chol, _, _ = pm.LKJCholeskyCov(
                    "subject_chol",
                    n=2,
                    eta=prior.lkj_eta,
                    sd_dist=pm.Exponential.dist(1.0 / prior.group_sd_scale, size=2),
                    compute_corr=True,
                )
                z_subject = pm.Normal("z_subject", 0.0, 1.0, dims=("effect", "subject"))
                r_subject = pm.Deterministic(
                    "r_subject", pm.math.dot(chol, z_subject).T, dims=("subject", "effect")
                )
                mu = mu + r_subject[subj, 0] + r_subject[subj, 1] * design.slope
            else:
                sd_subject = pm.Exponential("sd_subject", 1.0 / prior.group_sd_scale)
                z_subject = pm.Normal("z_subject", 0.0, 1.0, dims="subject")
                mu = mu + sd_subject * z_subject[subj]

            if design.spec.item_intercept:
                sd_item = pm.Exponential("sd_item", 1.0 / prior.group_sd_scale)
                z_item = pm.Normal("z_item", 0.0, 1.0, dims="item")
                mu = mu + sd_item * z_item[item]

            sigma = pm.HalfNormal("sigma", sigma=prior.sigma_scale)
            if design.spec.family == "lognormal":
                pm.LogNormal("obs", mu=mu, sigma=sigma, observed=design.y)
            else:
                pm.Normal("obs", mu=mu, sigma=sigma, observed=design.y)
        return model

    def sample(self, design: ModelDesign, config: McmcConfig) -> az.InferenceData:
        import pymc as pm

        model = self.build_model(design)
        with model:
            idata = pm.sample(
                draws=config.draws,
                tune=config.warmup,
                chains=config.chains,
                cores=config.cores,
                target_accept=config.target_accept,
                random_seed=config.random_seed,
                return_inferencedata=True,
                progressbar=config.progressbar,
            )
        return idata


# =============================================================================
# DIAGNOSTICS
# =============================================================================

@dataclass
class ConvergenceDiagnostics:
    divergences: int
    max_rhat: float
    min_ess_bulk: float
    min_ess_tail: float
    n_draws: int
    problems: List[str] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return not self.problems

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict) -> "ConvergenceDiagnostics":
        return cls(**payload)

    def describe(self) -> str:
        return (
            f"divergences={self.divergences}, max R-hat={self.max_rhat:.4f}, "
            f"min ESS bulk={self.min_ess_bulk:.0f}, min ESS tail={self.min_ess_tail:.0f}"
        )


def _count_divergences(idata: az.InferenceData) -> int:
    if not hasattr(idata, "sample_stats") or "diverging" not in idata.sample_stats:
        return 0
    return int(idata.sample_stats["diverging"].values.sum())


def diagnose_convergence(idata: az.InferenceData, config: McmcConfig) -> ConvergenceDiagnostics:
    """R-hat, bulk/tail ESS over population-level parameters plus divergence count."""
    var_names = [v for v in DIAGNOSTIC_VARS if v in idata.posterior]
    summary = az.summary(idata, var_names=var_names, kind="diagnostics")

    max_rhat = float(summary["r_hat"].max())
    min_ess_bulk = float(summary["ess_bulk"].min())
    min_ess_tail = float(summary["ess_tail"].min())
    divergences = _count_divergences(idata)
    posterior = idata.posterior
    n_draws = int(posterior.sizes["chain"] * posterior.sizes["draw"])

    problems = []
    if divergences > config.max_divergences:
        problems.append(f"{divergences} divergent transitions")
    if max_rhat > config.max_rhat:
        problems.append(f"R-hat {max_rhat:.4f} > {config.max_rhat}")
    if min_ess_bulk < config.min_ess:
        problems.append(f"bulk ESS {min_ess_bulk:.0f} < {config.min_ess:.0f}")
    if min_ess_tail < config.min_ess:
        problems.append(f"tail ESS {min_ess_tail:.0f} < {config.min_ess:.0f}")

    return ConvergenceDiagnostics(
        divergences=divergences,
        max_rhat=max_rhat,
        min_ess_bulk=min_ess_bulk,
        min_ess_tail=min_ess_tail,
        n_draws=n_draws,
        problems=problems,
    )


# =============================================================================
# FITTING
# =============================================================================

@dataclass
class FittedModel:
    spec: ModelSpec
    idata: az.InferenceData
    diagnostics: ConvergenceDiagnostics
    path: Optional[Path] = None
    data_fingerprint: Optional[str] = None
    sampling: Optional[dict] = None

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def terms(self) -> List[str]:
        posterior = self.idata.posterior
        terms = ["Intercept"]
        if "beta" in posterior:
            terms += [str(t) for t in posterior["beta"].coords["term"].values]
        return terms


def _handle_convergence(fitted: FittedModel, on_failure: str, verbose: bool) -> None:
    diag = fitted.diagnostics
    if diag.converged:
        if verbose:
            print(f"  [OK] {fitted.name}: converged ({diag.describe()})")
        return

    message = f"{fitted.name}: convergence checks failed ({'; '.join(diag.problems)}); {diag.describe()}"
    if on_failure == "raise":
        raise ConvergenceError(message, diag, fitted)
    if verbose:
        print(f"  [WARN] {message}")
    warnings.warn(message, ConvergenceWarning)


def fit_model(
    data: pd.DataFrame,
    spec: ModelSpec,
    config: Optional[McmcConfig] = None,
    sampler: Optional[PosteriorSampler] = None,
    on_failure: str = "warn",
    verbose: bool = True,
) -> FittedModel:
    """
    Sample the posterior of ``spec`` and check convergence.

    ``on_failure`` is "warn" (emit ConvergenceWarning, return the model) or
    "raise" (ConvergenceError with the model attached). When
    ``config.retry_target_accept`` is set, one refit with that value is
    attempted before reporting a failure.
    """
    if on_failure not in {"warn", "raise"}:
        raise ValueError("on_failure must be 'warn' or 'raise'")
    config = config or McmcConfig()
    sampler = sampler or PyMCSampler()

    design = build_design(data, spec)
    if verbose:
        print(
            f"  [INFO] fitting {spec.name}: n={design.n_obs}, subjects={len(design.subjects)}, "
            f"items={len(design.items)}, chains={config.chains}, cores={config.cores}, "
            f"draws={config.draws}, warmup={config.warmup}, target_accept={config.target_accept}"
        )

    idata = sampler.sample(design, config)
    diagnostics = diagnose_convergence(idata, config)

    if not diagnostics.converged and config.retry_target_accept:
        if verbose:
            print(
                f"  [WARN] {spec.name}: {'; '.join(diagnostics.problems)}; "
                f"retrying with target_accept={config.retry_target_accept}"
            )
        retry = replace(config, target_accept=config.retry_target_accept, retry_target_accept=None)
        idata = sampler.sample(design, retry)
        diagnostics = diagnose_convergence(idata, retry)

    fitted = FittedModel(
        spec=spec,
        idata=idata,
        diagnostics=diagnostics,
        data_fingerprint=design.fingerprint(),
        sampling=config.sampling_key(),
    )
    _handle_convergence(fitted, on_failure, verbose)
    return fitted


# =============================================================================
# PERSISTENCE
# =============================================================================

def snapshot_path(models_dir: Path, name: str) -> Path:
    return Path(models_dir) / f"{name}.nc"


def save_fitted(fitted: FittedModel, models_dir: Path) -> Path:
    """Write the posterior, spec, diagnostics and fit provenance as compressed NetCDF."""
    path = snapshot_path(models_dir, fitted.name)
    path.parent.mkdir(parents=True, exist_ok=True)
    attrs = fitted.idata.posterior.attrs
    attrs["model_spec"] = json.dumps(fitted.spec.to_dict())
    attrs["diagnostics"] = json.dumps(fitted.diagnostics.to_dict())
    attrs["data_fingerprint"] = fitted.data_fingerprint or ""
    attrs["sampling"] = json.dumps(fitted.sampling)
    fitted.idata.to_netcdf(str(path), compress=True)
    fitted.path = path
    return path


def load_fitted(path: Path) -> FittedModel:
    path = Path(path)
    with az.rc_context({"data.load": "eager"}):
        idata = az.from_netcdf(str(path))
    attrs = idata.posterior.attrs
    if "model_spec" not in attrs or "diagnostics" not in attrs:
        raise SchemaError(f"Snapshot {path} carries no model specification")
    spec = ModelSpec.from_dict(json.loads(attrs["model_spec"]))
    diagnostics = ConvergenceDiagnostics.from_dict(json.loads(attrs["diagnostics"]))
    return FittedModel(
        spec=spec,
        idata=idata,
        diagnostics=diagnostics,
        path=path,
        data_fingerprint=attrs.get("data_fingerprint") or None,
        sampling=json.loads(attrs["sampling"]) if "sampling" in attrs else None,
    )


def _stale_reason(cached: FittedModel, spec: ModelSpec, fingerprint: str, config: McmcConfig) -> Optional[str]:
    if cached.spec != spec:
        return "model spec differs"
    if cached.data_fingerprint != fingerprint:
        return "input data differs"
    if cached.sampling != config.sampling_key():
        return "MCMC settings differ"
    return None


def fit_or_load(
    data: pd.DataFrame,
    spec: ModelSpec,
    config: Optional[McmcConfig] = None,
    sampler: Optional[PosteriorSampler] = None,
    models_dir: Optional[Path] = None,
    refit: bool = False,
    on_failure: str = "warn",
    verbose: bool = True,
) -> FittedModel:
    """
    Reuse ``<models_dir>/<name>.nc`` when its spec, data fingerprint and MCMC
    settings all match; fit and save otherwise.

    A fit that fails the convergence checks is saved before ConvergenceError
    propagates under ``on_failure="raise"``.
    """
    if models_dir is None:
        from vowelspace.analysis.utils import get_models_dir
        models_dir = get_models_dir()
    config = config or McmcConfig()

    path = snapshot_path(models_dir, spec.name)
    if path.exists() and not refit:
        cached = load_fitted(path)
        reason = _stale_reason(cached, spec, build_design(data, spec).fingerprint(), config)
        if reason is None:
            if verbose:
                print(f"  [SKIP] {spec.name}: loaded snapshot {path}")
            if not cached.diagnostics.converged and verbose:
                print(f"  [WARN] {spec.name}: snapshot failed convergence checks ({cached.diagnostics.describe()})")
            return cached
        if verbose:
            print(f"  [INFO] {spec.name}: {reason}; refitting")

    try:
        fitted = fit_model(data, spec, config=config, sampler=sampler, on_failure=on_failure, verbose=verbose)
    except ConvergenceError as exc:
        if exc.fitted is not None:
            save_fitted(exc.fitted, models_dir)
            if verbose:
                print(f"  [WARN] saved non-converged {exc.fitted.path}")
        raise
    save_fitted(fitted, models_dir)
    if verbose:
        print(f"  [OK] saved {fitted.path}")
    return fitted
