"""Shared constants for preprocessing and analysis."""

import os
from pathlib import Path

# Directory paths
REPO_DIR = Path(__file__).resolve().parents[2]
DATA_DIR = REPO_DIR / "data"
RAW_DIR = DATA_DIR / "raw"
DERIVED_DIR = DATA_DIR / "derived"

OUTPUTS_DIR = REPO_DIR / "outputs"
OUTPUT_TABLES_DIR = OUTPUTS_DIR / "tables"
OUTPUT_FIGURES_DIR = OUTPUTS_DIR / "figures"
OUTPUT_MODELS_DIR = OUTPUTS_DIR / "models"

RAW_MEASUREMENTS_FILE = "vowel_measurements.csv"
DERIVED_TOKENS_FILE = "derived_tokens.csv"


def get_raw_measurements_path() -> Path:
    """Return the default raw measurement file."""
    return RAW_DIR / RAW_MEASUREMENTS_FILE


def get_derived_tokens_path() -> Path:
    """Return the default derived token table."""
    return DERIVED_DIR / DERIVED_TOKENS_FILE


# Canonical token schema
SUBJECT_COL = "subject"
ITEM_LABEL_COL = "item_label"
ITEM_ID_COL = "item_id"
VOWEL_COL = "vowel"
VOWEL_TYPE_COL = "vowel_type"
CONDITION_COL = "condition"
GENDER_COL = "gender"
DURATION_COL = "duration_ms"
F1_COL = "f1_hz"
F2_COL = "f2_hz"

RAW_REQUIRED_COLUMNS = [
    SUBJECT_COL,
    ITEM_LABEL_COL,
    VOWEL_COL,
    VOWEL_TYPE_COL,
    CONDITION_COL,
    GENDER_COL,
    DURATION_COL,
    F1_COL,
    F2_COL,
]
TOKEN_COLUMNS = [
    SUBJECT_COL,
    ITEM_ID_COL,
    VOWEL_COL,
    VOWEL_TYPE_COL,
    CONDITION_COL,
    GENDER_COL,
    DURATION_COL,
    F1_COL,
    F2_COL,
]
NUMERIC_COLUMNS = [DURATION_COL, F1_COL, F2_COL]

# Header aliases (compared after lower-casing and stripping non-alphanumerics)
COLUMN_ALIASES = {
    SUBJECT_COL: {"subject", "speaker", "participant", "participantid", "subjectid", "speakerid"},
    ITEM_LABEL_COL: {"itemlabel", "item", "word", "lexicalitem", "token", "target", "targetword"},
    VOWEL_COL: {"vowel", "phoneme", "vowelcategory"},
    VOWEL_TYPE_COL: {"voweltype", "type", "monodiph", "vtype"},
    CONDITION_COL: {"condition", "cond", "register", "politeness"},
    GENDER_COL: {"gender", "sex"},
    DURATION_COL: {"durationms", "duration", "dur", "durms", "vowelduration"},
    F1_COL: {"f1hz", "f1", "f1mid", "f1midpoint", "formant1"},
    F2_COL: {"f2hz", "f2", "f2mid", "f2midpoint", "formant2"},
}

# Category values
MONOPHTHONG = "monophthong"
DIPHTHONG = "diphthong"
VOWEL_TYPE_TOKENS = {
    MONOPHTHONG: {"monophthong", "mono", "m", "monophthongs"},
    DIPHTHONG: {"diphthong", "diph", "d", "diphthongs"},
}

CASUAL = "casual"
POLITE = "polite"
CONDITION_LEVELS = (CASUAL, POLITE)
CONDITION_TOKENS = {
    CASUAL: {"casual", "informal", "plain", "c", "banmal"},
    POLITE: {"polite", "formal", "honorific", "p", "jondaetmal"},
}

FEMALE = "female"
MALE = "male"
GENDER_LEVELS = (FEMALE, MALE)
FEMALE_TOKENS = {"f", "female", "woman", "women", "w"}
MALE_TOKENS = {"m", "male", "man", "men"}

# Sum coding: second level of each factor is +1
CONDITION_SUM_CODES = {CASUAL: -1, POLITE: 1}
GENDER_SUM_CODES = {FEMALE: -1, MALE: 1}

# MCMC defaults
DEFAULT_CHAINS = 4
DEFAULT_WARMUP = 2000
DEFAULT_ITERATIONS = 4000
DEFAULT_TARGET_ACCEPT = 0.99
DEFAULT_RANDOM_SEED = 2024
DEFAULT_FIXED_EFFECT_PRIOR_SD = 100.0
MIN_ESS = 400
MAX_RHAT = 1.01


def default_cores(chains: int = DEFAULT_CHAINS) -> int:
    """Cores to hand to the sampler: one per chain, capped by the machine."""
    return max(1, min(chains, os.cpu_count() or 1))
