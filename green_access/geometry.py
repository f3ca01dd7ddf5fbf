import logging
from pathlib import Path

import geopandas as gpd
import numpy as np
import pandas as pd
from pyproj import CRS, Transformer
from shapely.geometry import box
from shapely.ops import transform
from shapely.validation import make_valid

from green_access.config import WGS84
from green_access.errors import ConfigError, CRSMismatchError
from green_access.logutil import log_step

logger = logging.getLogger(__name__)


# --- Validity helpers ---
def fix_geom(g):
    if g is None or g.is_empty:
        return g
    return make_valid(g) if not g.is_valid else g


# -------------------- Reprojection --------------------
# Purpose: Pick the single projected CRS used for every distance and area in a run.
# Inputs:
# - config (dict): Merged configuration; 'local_crs' is 'auto' or a CRS identifier.
# - tracts (GeoDataFrame): Study-area tracts in any CRS, used when 'local_crs' is 'auto'.
# Outputs:
# - str: CRS identifier, e.g. 'EPSG:32610'.
def resolve_local_crs(config: dict, tracts: gpd.GeoDataFrame) -> str:
    value = config.get("local_crs", "auto")
    if str(value).lower() != "auto":
        crs = CRS.from_user_input(value)
        if not crs.is_projected:
            raise ConfigError(f"local_crs {value} is not a projected CRS")
        return crs.to_string()
    if tracts is None or tracts.empty:
        raise ConfigError("local_crs is 'auto' but there are no tracts to derive it from")
    geoms = tracts.geometry if tracts.crs is not None else tracts.geometry.set_crs(WGS84)
    geoms = geoms[geoms.notna() & ~geoms.is_empty]
    if geoms.empty:
        raise ConfigError("local_crs is 'auto' but every tract geometry is empty")
    utm = geoms.estimate_utm_crs()
    logger.info(f"Estimated local CRS {utm.to_string()} from study-area bounds")
    return utm.to_string()


def reproject(geometry, target_crs, source_crs=WGS84):
    """Return a new geometry in target_crs. The input is left untouched."""
    if geometry is None or geometry.is_empty:
        return geometry
    transformer = Transformer.from_crs(source_crs, target_crs, always_xy=True)
    return transform(transformer.transform, geometry)


# Purpose: Reproject a whole layer into the run's local metric CRS.
# Inputs:
# - gdf (GeoDataFrame): Layer in any CRS; a missing CRS is taken to be WGS84.
# - local_crs (str): Target projected CRS.
# Outputs:
# - GeoDataFrame: New frame in local_crs.
def to_local(gdf: gpd.GeoDataFrame, local_crs) -> gpd.GeoDataFrame:
    if gdf.crs is None:
        gdf = gdf.set_crs(WGS84)
    return gdf.to_crs(local_crs)


def ensure_same_crs(a: gpd.GeoDataFrame, b: gpd.GeoDataFrame) -> None:
    if a.crs is None or b.crs is None or not CRS(a.crs).equals(CRS(b.crs)):
        raise CRSMismatchError(f"Layers are in different CRSs: {a.crs} vs {b.crs}")


# -------------------- Buffer & matching --------------------
def buffer_tract(tract_geom, radius_m: float = 400.0):
    """Walking catchment: the projected tract grown outward by radius_m."""
    if radius_m < 0:
        raise ValueError(f"radius_m must be non-negative, got {radius_m}")
    return tract_geom.buffer(radius_m)


# Purpose: Select the green spaces reachable from a tract buffer.
# Inputs:
# - buffer (Polygon): Tract catchment in the local CRS.
# - green_spaces (GeoDataFrame): Green-space polygons in the same CRS, with a spatial index.
# - predicate (str): 'intersects' counts touching features; 'overlaps_interior' requires shared area.
# Outputs:
# - GeoDataFrame: Matching rows in their original order (possibly empty).
def find_intersecting(buffer, green_spaces: gpd.GeoDataFrame, predicate: str = "intersects") -> gpd.GeoDataFrame:
    if buffer is None or buffer.is_empty or green_spaces.empty:
        return green_spaces.iloc[0:0]
    idx = green_spaces.sindex.query(buffer, predicate="intersects")
    matched = green_spaces.iloc[np.sort(idx)]
    if predicate == "overlaps_interior":
        matched = matched[~matched.geometry.touches(buffer)]
    elif predicate != "intersects":
        raise ConfigError(f"Unknown match predicate {predicate!r}")
    return matched


# -------------------- Input preparation --------------------
# Purpose: Keep polygonal green spaces only, fix invalid shapes, and drop tiny or empty polygons.
# Inputs:
# - gdf (GeoDataFrame): Raw green spaces in any CRS.
# - local_crs (str): Projected CRS used for measuring area; the result is returned in it.
# - min_area_m2 (float): Polygons with area at or below this are dropped.
# Outputs:
# - GeoDataFrame: Polygon rows in local_crs. MultiPolygons stay whole so one park remains one row.
def prepare_green_spaces(gdf: gpd.GeoDataFrame, local_crs, min_area_m2: float = 0.0) -> gpd.GeoDataFrame:
    if gdf is None or gdf.empty:
        return gpd.GeoDataFrame(geometry=[], crs=local_crs)
    with log_step("Prepare green spaces"):
        local = to_local(gdf, local_crs).copy()
        local[local.geometry.name] = local.geometry.apply(fix_geom)
        local = local[local.geometry.notna() & ~local.geometry.is_empty].copy()
        local[local.geometry.name] = local.geometry.apply(_polygonal_part)
        local = local[local.geometry.notna() & ~local.geometry.is_empty].copy()
        local = local[local.geometry.area > float(min_area_m2)]
        dropped = len(gdf) - len(local)
        logger.info(f"green spaces: kept {len(local)} polygons (dropped {dropped}).")
    return local


def _polygonal_part(g):
    if g is None or g.is_empty:
        return None
    if g.geom_type in ("Polygon", "MultiPolygon"):
        return g
    parts = [p for p in getattr(g, "geoms", []) if p.geom_type in ("Polygon", "MultiPolygon")]
    if not parts:
        return None
    return gpd.GeoSeries(parts).union_all()


# Purpose: Drop green spaces that cannot reach any tract buffer.
# Inputs:
# - green_local (GeoDataFrame): Green spaces in the local CRS.
# - tracts_local (GeoDataFrame): Tracts in the same CRS.
# - radius_m (float): Buffer distance, so edge parks stay in.
# Outputs:
# - GeoDataFrame: Green spaces intersecting the study-area box grown by radius_m.
def clip_to_study_area(green_local: gpd.GeoDataFrame, tracts_local: gpd.GeoDataFrame, radius_m: float) -> gpd.GeoDataFrame:
    if green_local.empty or tracts_local.empty:
        return green_local
    ensure_same_crs(green_local, tracts_local)
    study_box = box(*tracts_local.total_bounds).buffer(radius_m)
    clipped = green_local[green_local.geometry.intersects(study_box)]
    logger.info(f"Clipped green spaces to study area: {len(clipped)}/{len(green_local)} remain")
    return clipped


# Purpose: Normalize tract rows for scoring without dropping or reordering any of them.
# Inputs:
# - gdf (GeoDataFrame): Tracts with population and income columns.
# - columns (dict): Column names for 'population' and 'median_income'.
# Outputs:
# - GeoDataFrame: Copy with a CRS and numeric attribute columns (NaN when missing).
#   Geometries are left as-is; invalid tracts fail at scoring time.
def prepare_tracts(gdf: gpd.GeoDataFrame, columns: dict) -> gpd.GeoDataFrame:
    out = gdf.copy()
    if out.crs is None:
        out = out.set_crs(WGS84)
    for key in ("population", "median_income"):
        col = columns.get(key)
        if col in out.columns:
            out[col] = pd.to_numeric(out[col], errors="coerce")
        else:
            logger.warning(f"Tract column {col!r} not found; treating {key} as missing")
            out[col] = np.nan
    return out


# -------------------- I/O --------------------
def safe_read(path: Path):
    path = Path(path)
    if not path.exists():
        logger.warning(f"File {path} does not exist. Returning empty GeoDataFrame.")
        return gpd.GeoDataFrame(geometry=[], crs=WGS84)
    with log_step(f"Read {path.name}"):
        gdf = gpd.read_file(path)
    if gdf.crs is None:
        gdf.set_crs(WGS84, inplace=True)
    logger.info(f"Loaded {path} with {len(gdf)} features.")
    return gdf
