"""Vowel-space tables and figures."""

from .hulls import convex_hull, hull_area, hull_areas, hull_table, vowel_means

__all__ = ["convex_hull", "hull_area", "hull_areas", "hull_table", "vowel_means"]
