"""Weighting terms that make up a tract's accessibility score.

All functions are pure: they take plain numbers, arrays or geometries in the
local metric CRS and return new values. Invalid inputs raise a
``ScoringError`` subclass so the batch runner can record why a tract failed.
"""
import math

import numpy as np
import pandas as pd

from green_access.errors import DegenerateGeometryError, MissingAttributeError, ScoringError

M2_PER_KM2 = 1e6


# -------------------- Coverage --------------------
# Purpose: Share of the tract's own area served by accessible green space.
# Inputs:
# - buffer (Polygon): Tract catchment in the local CRS.
# - accessible (GeoSeries): Matched green-space geometries in the same CRS.
# - tract_area (float): Area of the projected tract in m².
# Outputs:
# - float: Summed intersection area over tract area. Overlapping parks each count,
#   so the ratio can exceed 1.
def coverage_ratio(buffer, accessible, tract_area: float) -> float:
    if not tract_area > 0:
        raise DegenerateGeometryError(f"tract area must be positive, got {tract_area}")
    if len(accessible) == 0:
        return 0.0
    covered = float(accessible.intersection(buffer).area.sum())
    return covered / tract_area


# -------------------- Size --------------------
def size_weights(areas) -> np.ndarray:
    """Log-scaled size reward relative to the smallest park in the same accessible set."""
    areas = np.asarray(areas, dtype=float)
    if areas.size == 0:
        return areas
    min_area = areas.min()
    if not min_area > 0:
        raise DegenerateGeometryError(f"smallest accessible green space has no area ({min_area})")
    return 1.0 + np.log1p(areas / min_area)


# -------------------- Distance --------------------
def distance_weights(distances, radius_m: float) -> np.ndarray:
    """Linear decay from 1 at the tract edge to 0 at radius_m, floored at 0."""
    if not radius_m > 0:
        raise ValueError(f"radius_m must be positive, got {radius_m}")
    distances = np.asarray(distances, dtype=float)
    return np.maximum(0.0, 1.0 - distances / radius_m)


def mean_green_weight(sizes, distances) -> float:
    sizes = np.asarray(sizes, dtype=float)
    distances = np.asarray(distances, dtype=float)
    if sizes.size == 0:
        return 0.0
    return float(np.mean(sizes * distances))


# -------------------- Density --------------------
# Purpose: People per km² for one tract.
# Inputs:
# - population (float|None): Tract population; None/NaN or negative is unusable.
# - area_m2 (float): Projected tract area in m².
# Outputs:
# - float: Population density per km².
def tract_density(population, area_m2: float) -> float:
    if population is None or pd.isna(population):
        raise MissingAttributeError("population is missing")
    if population < 0:
        raise MissingAttributeError(f"population must be non-negative, got {population}")
    if not area_m2 > 0:
        raise DegenerateGeometryError(f"tract area must be positive, got {area_m2}")
    return float(population) / (area_m2 / M2_PER_KM2)


# Purpose: City-wide mean density used as the demand baseline.
# Inputs:
# - populations (Series|array): Population per tract, NaN where missing.
# - areas_m2 (Series|array): Projected area per tract in m².
# Outputs:
# - float: Mean density per km² over tracts with a population and a positive area;
#   NaN when no tract qualifies.
def reference_density(populations, areas_m2) -> float:
    pop = pd.to_numeric(pd.Series(populations), errors="coerce").to_numpy(dtype=float)
    area = np.asarray(areas_m2, dtype=float)
    usable = ~np.isnan(pop) & (pop >= 0) & (area > 0)
    if not usable.any():
        return float("nan")
    return float(np.mean(pop[usable] / (area[usable] / M2_PER_KM2)))


def density_factor(density: float, reference: float) -> float:
    """Demand penalty: 1 for an empty tract, growing logarithmically with relative density."""
    if reference is None or not reference > 0:
        raise MissingAttributeError(f"reference density is undefined ({reference})")
    return 1.0 + math.log1p(density / reference)


# -------------------- Aggregation --------------------
def aggregate_score(coverage: float, mean_weight: float, factor: float) -> float:
    raw = coverage * mean_weight / factor
    if not math.isfinite(raw):
        raise ScoringError(f"non-finite raw score ({raw})")
    return min(1.0, raw)
