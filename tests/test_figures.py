"""Smoke tests for figure generation (Agg backend)."""

from __future__ import annotations

import pytest

from vowelspace.analysis.bayes_models import ModelSpec, fit_model
from vowelspace.figures_tables.generate_vowel_figures import (
    generate_all,
    plot_paired_lines,
    plot_posteriors,
)


def test_generate_all_writes_descriptive_figures(tmp_path, derived):
    paths = generate_all(derived, output_dir=tmp_path, verbose=False)
    names = sorted(p.name for p in paths)
    assert names == [
        "figure1_vowel_space.png",
        "figure2_distance_boxplots.png",
        "figure3_paired_euclidean_dist.png",
    ]
    assert all(p.exists() and p.stat().st_size > 0 for p in paths)


def test_paired_lines_tolerate_single_condition_speaker(tmp_path, derived):
    path = plot_paired_lines(derived, tmp_path, measure="duration_ms", verbose=False)
    assert path.exists()


def test_posterior_figure(tmp_path, derived, fake_sampler, fast_config):
    spec = ModelSpec(
        name="duration_normal",
        outcome="duration_ms",
        fixed_formula="condition_coded * gender_coded + C(vowel)",
    )
    fitted = fit_model(derived, spec, config=fast_config, sampler=fake_sampler, verbose=False)
    path = plot_posteriors(fitted, tmp_path, verbose=False)
    assert path.name == "figure4_posterior_duration_normal.png"
    with pytest.raises(ValueError):
        plot_posteriors(fitted, tmp_path, terms=[], verbose=False)
