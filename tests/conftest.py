"""Shared fixtures: synthetic measurement tables and a sampler stand-in."""

from __future__ import annotations

from pathlib import Path
import sys

import arviz as az
import numpy as np
import pandas as pd
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import matplotlib

matplotlib.use("Agg")

from vowelspace.analysis.bayes_models import McmcConfig, ModelDesign
from vowelspace.preprocessing.features import derive_features
from vowelspace.preprocessing.loaders import clean_measurements

VOWEL_FORMANTS = {"a": (750.0, 1300.0), "e": (480.0, 2000.0), "i": (300.0, 2300.0), "u": (320.0, 800.0)}

# (subject, gender label, conditions recorded)
SPEAKERS = [
    ("S1", "F", ["Casual", "Polite"]),
    ("S2", "M", ["Casual", "Polite"]),
    ("S3", "M", ["Casual"]),
]


def make_raw_rows() -> list[dict]:
    rows = []
    for s_i, (subject, gender, conditions) in enumerate(SPEAKERS):
        for cond in conditions:
            polite = cond == "Polite"
            scale = 1.08 if polite else 1.0
            for v_i, (vowel, (f1, f2)) in enumerate(VOWEL_FORMANTS.items()):
                for rep in range(2):
                    rows.append({
                        "Subject": subject,
                        "Word": f"w{vowel}{rep}",
                        "Vowel": vowel,
                        "Vowel Type": "Monophthong",
                        "Condition": cond,
                        "Gender": gender,
                        "Duration (ms)": 80.0 + 10 * v_i + 5 * rep + (15.0 if polite else 0.0),
                        "F1 (Hz)": f1 * scale + 10 * rep + 20 * s_i,
                        "F2 (Hz)": f2 * scale - 15 * rep + 30 * s_i,
                    })
            rows.append({
                "Subject": subject,
                "Word": "wai",
                "Vowel": "ai",
                "Vowel Type": "Diphthong",
                "Condition": cond,
                "Gender": gender,
                "Duration (ms)": 140.0,
                "F1 (Hz)": 650.0,
                "F2 (Hz)": 1600.0,
            })
    return rows


@pytest.fixture
def raw_measurements() -> pd.DataFrame:
    return pd.DataFrame(make_raw_rows())


@pytest.fixture
def tokens(raw_measurements: pd.DataFrame) -> pd.DataFrame:
    return clean_measurements(raw_measurements)


@pytest.fixture
def derived(tokens: pd.DataFrame) -> pd.DataFrame:
    return derive_features(tokens)


@pytest.fixture
def simulated_derived() -> pd.DataFrame:
    """Larger noisy table with a clear polite lengthening effect."""
    rng = np.random.default_rng(7)
    rows = []
    for s in range(10):
        gender = "female" if s % 2 == 0 else "male"
        speaker_shift = rng.normal(0, 5)
        for cond in ("casual", "polite"):
            for v_i, (vowel, (f1, f2)) in enumerate(VOWEL_FORMANTS.items()):
                for rep in range(3):
                    rows.append({
                        "subject": f"S{s}",
                        "item_id": f"Item{v_i * 3 + rep + 1}",
                        "vowel": vowel,
                        "vowel_type": "monophthong",
                        "condition": cond,
                        "gender": gender,
                        "duration_ms": 90 + 8 * v_i + speaker_shift + (30 if cond == "polite" else 0) + rng.normal(0, 5),
                        "f1_hz": f1 + rng.normal(0, 20),
                        "f2_hz": f2 + rng.normal(0, 40),
                    })
    return derive_features(pd.DataFrame(rows))


class FakeSampler:
    """Returns independent normal draws shaped like a real posterior."""

    def __init__(
        self,
        chains: int = 4,
        draws: int = 1000,
        divergences: list[int] | None = None,
        beta_mean: float = 0.5,
        seed: int = 0,
    ) -> None:
        self.chains = chains
        self.draws = draws
        self.divergences = list(divergences or [0])
        self.beta_mean = beta_mean
        self.seed = seed
        self.configs: list[McmcConfig] = []
        self.designs: list[ModelDesign] = []

    def sample(self, design: ModelDesign, config: McmcConfig) -> az.InferenceData:
        call = len(self.configs)
        self.configs.append(config)
        self.designs.append(design)
        rng = np.random.default_rng(self.seed + call)
        shape = (self.chains, self.draws)
        n_div = self.divergences[min(call, len(self.divergences) - 1)]
        diverging = np.zeros(shape, dtype=bool)
        diverging.flat[:n_div] = True
        return az.from_dict(
            posterior={
                "Intercept": rng.normal(design.prior.intercept_mu, 1.0, size=shape),
                "beta": rng.normal(self.beta_mean, 1.0, size=shape + (len(design.terms),)),
                "sigma": np.abs(rng.normal(1.0, 0.1, size=shape)),
            },
            sample_stats={"diverging": diverging},
            coords={"term": design.terms},
            dims={"beta": ["term"]},
        )


class FailingSampler:
    def sample(self, design: ModelDesign, config: McmcConfig) -> az.InferenceData:
        raise AssertionError("sampler should not be called")


@pytest.fixture
def fake_sampler() -> FakeSampler:
    return FakeSampler()


@pytest.fixture
def fast_config() -> McmcConfig:
    return McmcConfig(chains=4, cores=1, warmup=100, iterations=200, random_seed=11)
