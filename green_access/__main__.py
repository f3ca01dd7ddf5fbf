import argparse
import json
import logging
import sys
from pathlib import Path

from green_access.config import PROJECT_ROOT, load_config
from green_access.geometry import safe_read
from green_access.logutil import log_step, setup_logging
from green_access.metrics import summarize_scores
from green_access.scoring import score_tracts

logger = logging.getLogger(__name__)


def _resolve(path) -> Path:
    path = Path(path)
    return path if path.is_absolute() else PROJECT_ROOT / path


# -------------------- Main Processing --------------------
# Purpose: End-to-end run: read tracts and green spaces, score every tract, write outputs.
# Inputs:
# - argv (list[str]|None): Command-line arguments (--config, --workers).
# Outputs (written to io.output_dir):
# - scored_tracts.geojson: Input tracts with 'accessibility' and 'accessibility_status' (WGS84).
# - metrics.json: Summary metrics, including mean accessibility per income quintile.
# Returns 0 on success, 1 when there are no tracts to score.
def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="green_access", description="Score green-space accessibility per census tract.")
    parser.add_argument("--config", help="Path to config.yaml (default: project root)")
    parser.add_argument("--workers", type=int, help="Worker threads (overrides max_workers)")
    args = parser.parse_args(argv)

    setup_logging()
    config = load_config(args.config)
    io_cfg = config["io"]
    outputs_dir = _resolve(io_cfg["output_dir"])
    outputs_dir.mkdir(parents=True, exist_ok=True)

    tracts = safe_read(_resolve(io_cfg["tracts"]))
    green = safe_read(_resolve(io_cfg["green_spaces"]))
    if tracts.empty:
        logger.error("No tracts to score.")
        return 1

    scored = score_tracts(tracts, green, config, max_workers=args.workers)

    with log_step("Write scored_tracts.geojson"):
        scored.to_crs("EPSG:4326").to_file(outputs_dir / "scored_tracts.geojson", driver="GeoJSON")

    with log_step("Write metrics.json"):
        metrics = summarize_scores(scored, config["columns"]["median_income"])
        with open(outputs_dir / "metrics.json", "w") as f:
            json.dump(metrics, f, indent=2)

    logger.info("Scoring pipeline complete.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
