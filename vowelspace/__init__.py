"""Vowel-space dispersion across casual and polite speech."""

__version__ = "0.1.0"
