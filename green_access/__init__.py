"""Green-space accessibility scoring for census tracts."""

from green_access.config import load_config, merge_config
from green_access.scoring import AccessibilityResult, score_tract, score_tracts

__all__ = ["AccessibilityResult", "load_config", "merge_config", "score_tract", "score_tracts"]
