import logging
from pathlib import Path

import yaml

from green_access.errors import ConfigError

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_PATH = PROJECT_ROOT / "config.yaml"

WGS84 = "EPSG:4326"

# Defaults
DEFAULTS = {
    "buffer_distance_m": 400.0,   # walking catchment around each tract
    "local_crs": "auto",          # "auto" = UTM zone of the study area
    "match_predicate": "intersects",
    "min_green_area_m2": 0.0,     # green spaces at or below this are dropped
    "max_workers": 1,
    "report_every": 100,
    "columns": {
        "id": "GEOID",
        "population": "population",
        "median_income": "median_income",
    },
    "io": {
        "tracts": "data/tracts.geojson",
        "green_spaces": "data/green_spaces.geojson",
        "output_dir": "outputs",
    },
}

MATCH_PREDICATES = {"intersects", "overlaps_interior"}


# Purpose: Merge user settings over DEFAULTS, one level deep for the nested sections.
# Inputs:
# - overrides (dict|None): Partial configuration, e.g. parsed from config.yaml.
# Outputs:
# - dict: Complete, validated configuration.
def merge_config(overrides=None) -> dict:
    overrides = dict(overrides or {})
    cfg = {**DEFAULTS, **overrides}
    for section in ("columns", "io"):
        cfg[section] = {**DEFAULTS[section], **(overrides.get(section) or {})}
    validate_config(cfg)
    return cfg


def validate_config(cfg: dict) -> None:
    try:
        radius = float(cfg["buffer_distance_m"])
        workers = int(cfg["max_workers"])
        report_every = int(cfg["report_every"])
        min_area = float(cfg["min_green_area_m2"])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid numeric setting: {e}") from e
    if radius <= 0:
        raise ConfigError(f"buffer_distance_m must be positive, got {radius}")
    if workers < 1:
        raise ConfigError(f"max_workers must be at least 1, got {workers}")
    if report_every < 1:
        raise ConfigError(f"report_every must be at least 1, got {report_every}")
    if min_area < 0:
        raise ConfigError(f"min_green_area_m2 must be non-negative, got {min_area}")
    if cfg["match_predicate"] not in MATCH_PREDICATES:
        raise ConfigError(
            f"match_predicate must be one of {sorted(MATCH_PREDICATES)}, got {cfg['match_predicate']!r}"
        )
    if not cfg.get("local_crs"):
        raise ConfigError("local_crs must be 'auto' or a CRS identifier")


# Purpose: Load config.yaml and merge it over the defaults.
# Inputs:
# - path (str|Path|None): Config file; defaults to config.yaml at the project root.
# Outputs:
# - dict: Complete configuration. A missing file yields the defaults.
def load_config(path=None) -> dict:
    path = Path(path) if path else CONFIG_PATH
    if not path.exists():
        logger.warning(f"Config {path} not found. Using defaults.")
        return merge_config({})
    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    logger.info(f"Loaded config from {path}")
    return merge_config(raw)
