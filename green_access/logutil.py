import logging
import time
from contextlib import contextmanager

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


# Purpose: Configure root logging for command-line runs.
# Inputs:
# - level (int): Logging level, INFO by default.
# Outputs:
# - None.
def setup_logging(level=logging.INFO):
    logging.basicConfig(level=level, format=LOG_FORMAT)


@contextmanager
# Purpose: Context manager to log the start and end of a processing step with elapsed time.
# Inputs:
# - label (str): Human readable step label to include in log messages.
# Outputs:
# - None. Produces INFO log lines when entering and leaving the context.
def log_step(label: str):
    """Log start/end and wall time of a processing step."""
    logger.info(f"[START] {label}")
    t0 = time.perf_counter()
    try:
        yield
    finally:
        dt = time.perf_counter() - t0
        logger.info(f"[END]   {label} in {dt:.2f}s")
