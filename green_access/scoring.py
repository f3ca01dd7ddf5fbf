import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, List, Optional

import geopandas as gpd
import numpy as np

from green_access.config import MATCH_PREDICATES, merge_config
from green_access.errors import ConfigError, DegenerateGeometryError
from green_access.geometry import (
    buffer_tract,
    clip_to_study_area,
    ensure_same_crs,
    find_intersecting,
    prepare_green_spaces,
    prepare_tracts,
    resolve_local_crs,
    to_local,
)
from green_access.logutil import log_step
from green_access.weights import (
    aggregate_score,
    coverage_ratio,
    density_factor,
    distance_weights,
    mean_green_weight,
    reference_density,
    size_weights,
    tract_density,
)

logger = logging.getLogger(__name__)

SCORED = "scored"
NO_GREEN_SPACE = "no_green_space"
FAILED = "failed"


@dataclass(frozen=True)
class AccessibilityResult:
    tract_id: object
    score: float
    status: str = SCORED
    reason: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status == FAILED

    @classmethod
    def from_error(cls, tract_id, exc: Exception) -> "AccessibilityResult":
        kind = getattr(exc, "kind", type(exc).__name__)
        return cls(tract_id, 0.0, FAILED, f"{kind}: {exc}")


# -------------------- Per-tract scoring --------------------
# Purpose: Score one tract against the accessible green spaces around it.
# Inputs:
# - tract_geom (Polygon): Tract geometry in the local metric CRS.
# - population (float|None): Tract population.
# - green_spaces (GeoDataFrame): Prepared green spaces in the same CRS.
# - ref_density (float): City-wide mean density (people/km²), computed before any tract.
# - radius_m (float): Walking buffer distance in meters.
# - predicate (str): Match predicate passed to find_intersecting.
# - tract_id: Identifier carried into the result.
# Outputs:
# - AccessibilityResult: 'scored', 'no_green_space' (score 0) or 'failed' (score 0 with reason).
#   Empty, invalid or zero-area tracts fail; they are not repaired.
# Raises ConfigError for an unknown predicate.
def score_tract(tract_geom, population, green_spaces: gpd.GeoDataFrame, ref_density: float,
                radius_m: float = 400.0, predicate: str = "intersects", tract_id=None) -> AccessibilityResult:
    if predicate not in MATCH_PREDICATES:
        raise ConfigError(f"Unknown match predicate {predicate!r}")
    try:
        if tract_geom is None or tract_geom.is_empty:
            raise DegenerateGeometryError("tract geometry is empty")
        if not tract_geom.is_valid:
            raise DegenerateGeometryError("tract geometry is invalid")
        area = tract_geom.area
        if not area > 0:
            raise DegenerateGeometryError(f"tract area must be positive, got {area}")

        buf = buffer_tract(tract_geom, radius_m)
        accessible = find_intersecting(buf, green_spaces, predicate)
        if accessible.empty:
            return AccessibilityResult(tract_id, 0.0, NO_GREEN_SPACE)

        geoms = accessible.geometry
        coverage = coverage_ratio(buf, geoms, area)
        sizes = size_weights(geoms.area.to_numpy())
        decay = distance_weights(geoms.distance(tract_geom).to_numpy(), radius_m)
        factor = density_factor(tract_density(population, area), ref_density)
        score = aggregate_score(coverage, mean_green_weight(sizes, decay), factor)
        return AccessibilityResult(tract_id, score, SCORED)
    except Exception as e:
        return AccessibilityResult.from_error(tract_id, e)


# -------------------- Batch runner --------------------
# Purpose: Score every tract, isolating failures per tract.
# Inputs:
# - tracts (GeoDataFrame): Tracts in any CRS (WGS84 assumed when unset). Not modified.
# - green_spaces (GeoDataFrame): Green-space polygons in any CRS.
# - config (dict|None): Full or partial configuration, merged over DEFAULTS.
# - progress (callable|None): Observer called as progress(done, total) after each tract.
# - max_workers (int|None): Thread count; overrides config['max_workers'].
# Outputs:
# - GeoDataFrame: Copy of tracts in the original order and CRS with 'accessibility' in [0,1]
#   (failures recorded as 0) and 'accessibility_status'.
def score_tracts(tracts: gpd.GeoDataFrame, green_spaces: gpd.GeoDataFrame, config: dict = None,
                 progress: Callable[[int, int], None] = None, max_workers: int = None) -> gpd.GeoDataFrame:
    config = merge_config(config)
    columns = config["columns"]
    radius = float(config["buffer_distance_m"])
    predicate = config["match_predicate"]
    workers = int(max_workers or config["max_workers"])

    out = tracts.copy()
    if tracts.empty:
        out["accessibility"] = np.array([], dtype=float)
        out["accessibility_status"] = np.array([], dtype=object)
        return out

    present = tracts.geometry.notna() & ~tracts.geometry.is_empty
    if not present.any():
        logger.warning(f"All {len(tracts)} tract geometries are empty; every tract recorded as failed (0)")
        out["accessibility"] = 0.0
        out["accessibility_status"] = FAILED
        return out

    with log_step("Reproject layers"):
        prepared = prepare_tracts(tracts, columns)
        local_crs = resolve_local_crs(config, prepared)
        tracts_l = to_local(prepared, local_crs)
        green_l = prepare_green_spaces(green_spaces, local_crs, config["min_green_area_m2"])
        green_l = clip_to_study_area(green_l, tracts_l, radius)
        ensure_same_crs(tracts_l, green_l)
        # build the spatial index before any worker reads it
        _ = green_l.sindex

    with log_step("Reference density"):
        # invalid tracts fail individually, so they stay out of the baseline
        areas = tracts_l.geometry.area.where(tracts_l.geometry.is_valid)
        ref = reference_density(tracts_l[columns["population"]], areas)
        logger.info(f"Reference density: {ref:.1f} people/km²")
        if not ref > 0:
            logger.error("Reference density is undefined; tracts with green space nearby will fail")

    ids = _tract_ids(tracts_l, columns["id"])
    pops = tracts_l[columns["population"]].tolist()
    geoms = list(tracts_l.geometry)

    def _one(i):
        return score_tract(geoms[i], pops[i], green_l, ref, radius, predicate, tract_id=ids[i])

    with log_step(f"Score {len(geoms)} tracts"):
        results = _run(_one, len(geoms), workers, progress, int(config["report_every"]))

    for r in results:
        if r.failed:
            logger.warning(f"Tract {r.tract_id}: scoring failed ({r.reason}); recorded as 0")

    out["accessibility"] = [r.score for r in results]
    out["accessibility_status"] = [r.status for r in results]
    return out


def _tract_ids(gdf, id_column):
    if id_column in gdf.columns:
        return gdf[id_column].tolist()
    return list(gdf.index)


def _run(fn, total: int, workers: int, progress, report_every: int) -> List[AccessibilityResult]:
    """Map fn over tract positions into a pre-sized list, each slot written once."""
    results: List[Optional[AccessibilityResult]] = [None] * total
    start = time.perf_counter()
    last = start

    def _report(done):
        nonlocal last
        if progress is not None:
            progress(done, total)
        if done % report_every == 0 or done == total or (time.perf_counter() - last > 5.0):
            pct = 100.0 * done / total
            logger.info(f"  … scored {done}/{total} ({pct:.1f}%) in {time.perf_counter()-start:.1f}s")
            last = time.perf_counter()

    if workers <= 1:
        for i in range(total):
            results[i] = fn(i)
            _report(i + 1)
        return results

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(fn, i): i for i in range(total)}
        for done, future in enumerate(as_completed(futures), start=1):
            results[futures[future]] = future.result()
            _report(done)
    return results
