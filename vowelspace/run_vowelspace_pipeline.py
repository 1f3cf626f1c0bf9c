"""Clean measurements, derive features, describe, fit models and draw figures.

Usage:
    python -m vowelspace
    python -m vowelspace --input data/raw/vowel_measurements.csv --families lognormal
    python -m vowelspace --skip-models
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import pandas as pd

from vowelspace.analysis.bayes_models import (
    FAMILIES,
    ConvergenceError,
    McmcConfig,
    PosteriorSampler,
    PriorSpec,
    default_model_specs,
    fit_or_load,
)
from vowelspace.analysis.descriptive_statistics import describe_measures
from vowelspace.analysis.mixedlm_check import fit_mixedlm_check
from vowelspace.analysis.posterior_summary import posterior_probability, summarize_coefficients
from vowelspace.analysis.utils import (
    format_coefficient,
    get_figures_dir,
    get_models_dir,
    get_output_dir,
    print_section_header,
    save_table,
)
from vowelspace.preprocessing.constants import (
    DEFAULT_CHAINS,
    DEFAULT_FIXED_EFFECT_PRIOR_SD,
    DEFAULT_ITERATIONS,
    DEFAULT_RANDOM_SEED,
    DEFAULT_TARGET_ACCEPT,
    DEFAULT_WARMUP,
)
from vowelspace.preprocessing.core import EmptyDatasetError, SchemaError
from vowelspace.preprocessing.features import BOTH_DIST_REFERENCES, derive_features
from vowelspace.preprocessing.loaders import load_tokens

if sys.platform.startswith("win") and hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8")

CONDITION_TERM = "condition_coded"


def _safe_run(step: str, func, *args, **kwargs):
    try:
        return func(*args, **kwargs)
    except Exception as exc:
        print(f"[WARN] {step} failed: {exc}")
        return None


def run_models(
    derived: pd.DataFrame,
    config: McmcConfig,
    families: list[str],
    prior: PriorSpec,
    output_root: Path | None,
    refit: bool,
    verbose: bool,
    sampler: PosteriorSampler | None = None,
) -> list:
    print_section_header("BAYESIAN MIXED-EFFECTS MODELS")
    models_dir = get_models_dir(output_root)
    fitted_models = []
    summaries = []
    for spec in default_model_specs(families, prior=prior):
        try:
            fitted = fit_or_load(
                derived,
                spec,
                config=config,
                models_dir=models_dir,
                sampler=sampler,
                refit=refit,
                verbose=verbose,
            )
        except ConvergenceError as exc:
            print(f"[WARN] {exc}")
            if exc.fitted is None:
                continue
            fitted = exc.fitted
        except (ValueError, SchemaError, EmptyDatasetError) as exc:
            # e.g. a zero euclidean_dist under the log-normal family
            print(f"  [SKIP] {spec.name}: {exc}")
            continue
        fitted_models.append(fitted)

        summary = summarize_coefficients(fitted)
        summary["converged"] = fitted.diagnostics.converged
        summaries.append(summary)
        row = summary.set_index("term").loc[CONDITION_TERM]
        estimate = format_coefficient(row["mean"], row["hdi_2.5%"], row["hdi_97.5%"])
        p_pos = posterior_probability(fitted, CONDITION_TERM, "positive")
        print(f"  {spec.name}: {CONDITION_TERM} = {estimate}, P(> 0) = {p_pos:.3f}")

    if summaries:
        save_table(
            pd.concat(summaries, ignore_index=True),
            get_output_dir(output_root) / "model_coefficients.csv",
            verbose=verbose,
        )
    return fitted_models


def run_mixedlm_checks(derived: pd.DataFrame, families: list[str], output_root: Path | None, verbose: bool) -> None:
    print_section_header("FREQUENTIST CROSS-CHECK (MixedLM)")
    tables = []
    for spec in default_model_specs(families):
        table = _safe_run(f"mixedlm_{spec.name}", fit_mixedlm_check, derived, spec, verbose=verbose)
        if table is not None:
            tables.append(table)
    if tables:
        save_table(
            pd.concat(tables, ignore_index=True),
            get_output_dir(output_root) / "mixedlm_coefficients.csv",
            verbose=verbose,
        )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Vowel-space dispersion pipeline")
    parser.add_argument("--input", type=Path, default=None, help="Raw measurement file")
    parser.add_argument("--output-dir", type=Path, default=None, help="Outputs root directory")
    parser.add_argument(
        "--both-dist-reference",
        choices=list(BOTH_DIST_REFERENCES),
        default="speaker",
        help="Centroid used for the mean absolute axis distance",
    )
    parser.add_argument("--skip-models", action="store_true", help="Skip Bayesian models")
    parser.add_argument("--skip-mixedlm", action="store_true", help="Skip the MixedLM cross-check")
    parser.add_argument("--skip-figures", action="store_true", help="Skip figure generation")
    parser.add_argument("--refit", action="store_true", help="Ignore saved model snapshots")
    parser.add_argument("--families", nargs="+", choices=list(FAMILIES), default=list(FAMILIES))
    parser.add_argument("--chains", type=int, default=DEFAULT_CHAINS)
    parser.add_argument("--cores", type=int, default=None, help="Parallel chains (default: one per chain)")
    parser.add_argument("--seed", type=int, default=DEFAULT_RANDOM_SEED)
    parser.add_argument("--warmup", type=int, default=DEFAULT_WARMUP)
    parser.add_argument("--iterations", type=int, default=DEFAULT_ITERATIONS, help="Total iterations per chain")
    parser.add_argument("--target-accept", type=float, default=DEFAULT_TARGET_ACCEPT)
    parser.add_argument("--prior-sd", type=float, default=DEFAULT_FIXED_EFFECT_PRIOR_SD)
    parser.add_argument("--quiet", action="store_true", help="Suppress verbose output")
    args = parser.parse_args(argv)
    verbose = not args.quiet

    print_section_header("DATA")
    try:
        tokens = load_tokens(args.input, verbose=verbose)
        derived = derive_features(tokens, both_dist_reference=args.both_dist_reference, verbose=verbose)
    except (SchemaError, EmptyDatasetError, FileNotFoundError) as exc:
        print(f"[ERROR] {exc}")
        return 1
    save_table(derived, get_output_dir(args.output_dir) / "derived_tokens.csv", verbose=verbose)

    tables = describe_measures(derived, verbose=verbose)
    for name, table in tables.items():
        save_table(table, get_output_dir(args.output_dir) / f"{name}.csv", verbose=verbose)

    fitted_models = []
    if not args.skip_models:
        try:
            config = McmcConfig(
                chains=args.chains,
                cores=args.cores,
                random_seed=args.seed,
                warmup=args.warmup,
                iterations=args.iterations,
                target_accept=args.target_accept,
                progressbar=verbose,
            )
        except ValueError as exc:
            print(f"[ERROR] {exc}")
            return 1
        fitted_models = run_models(
            derived,
            config,
            families=args.families,
            prior=PriorSpec(b_sd=args.prior_sd),
            output_root=args.output_dir,
            refit=args.refit,
            verbose=verbose,
        )

    if not args.skip_mixedlm:
        run_mixedlm_checks(derived, args.families, args.output_dir, verbose)

    if not args.skip_figures:
        from vowelspace.figures_tables.generate_vowel_figures import generate_all

        print_section_header("FIGURES")
        _safe_run(
            "figures",
            generate_all,
            derived,
            fitted_models,
            output_dir=get_figures_dir(args.output_dir),
            verbose=verbose,
        )

    print("\n[OK] pipeline finished")
    return 0


if __name__ == "__main__":
    sys.exit(main())
