import logging
import shutil
import sys
import time
from datetime import datetime, timedelta
from pathlib import Path

# ||||||||||||||||||||||||||||
# CONFIGURATION
# ||||||||||||||||||||||||||||

# ---------------------------
# GRID CONFIG
# ---------------------------

GRID_WIDTH = 50  # number of tiles horizontally in one colony
GRID_HEIGHT = 50  # number of tiles vertically in one colony

# ---------------------------
# RENDER CONFIG
# ---------------------------

TILE_SIZE = 12  # tile size in pixels for plan renders

# ---------------------------
# PERSISTENCE CONFIG
# ---------------------------

DEFAULT_STORE_FILE = "plan_store.json"

# ||||||||||||||||||||||||||||
# LOGGING CONFIGURATION
# ||||||||||||||||||||||||||||

ROOT_LOGGER_NAME = 'BasePlanner'
LOG_DIR_NAME = "log_dump"
ARCHIVE_DIR_NAME = "old_log_dump"
LOG_FORMAT = '[%(asctime)s] - [%(name)s] - [%(levelname)s] - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_RETENTION = timedelta(days=1)  # session logs older than this are archived


def setup_logging(project_root, level=logging.DEBUG):
    """
    Configure file + console logging for a planner run.

    Each run writes its own planner_<timestamp>.log under log_dump/. Logs left
    over from earlier runs are moved to old_log_dump/ once they pass
    LOG_RETENTION.

    Args:
        project_root: Directory that holds log_dump/ and old_log_dump/
        level: Root log level (default: DEBUG)

    Returns:
        logging.Logger: The application root logger
    """
    log_dir = Path(project_root) / LOG_DIR_NAME
    archive_dir = Path(project_root) / ARCHIVE_DIR_NAME
    log_dir.mkdir(exist_ok=True)
    archive_dir.mkdir(exist_ok=True)

    archived = _archive_old_logs(log_dir, archive_dir)

    log_path = log_dir / f"planner_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=[
            logging.FileHandler(log_path, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.info(f"Logging to {log_path}")
    if archived:
        logger.info(f"Archived {len(archived)} old log file(s) to {archive_dir}")
    return logger


def _archive_old_logs(log_dir, archive_dir, retention=LOG_RETENTION):
    """Move *.log files older than `retention` into archive_dir. Returns the moved names."""
    cutoff = datetime.now() - retention
    moved = []
    for log_file in sorted(Path(log_dir).glob("*.log")):
        if datetime.fromtimestamp(log_file.stat().st_mtime) < cutoff:
            shutil.move(str(log_file), str(Path(archive_dir) / log_file.name))
            moved.append(log_file.name)
    return moved


def get_logger(name=None):
    """
    Logger for one module; call as `logger = get_logger(__name__)`.

    With no name, returns the application root logger.
    """
    return logging.getLogger(name or ROOT_LOGGER_NAME)


def get_planner_logger():
    """
    Get the logger used by the layout planning passes.

    Keeps per-colony planning chatter apart from the driver and persistence logs.

    Returns:
        logging.Logger: Planning logger instance
    """
    return logging.getLogger(f'{ROOT_LOGGER_NAME}.Planning')


class PerformanceTimer:
    """
    Times a block and logs its duration at DEBUG.

    Usage:
        with PerformanceTimer(logger, "Planning W1N1") as timer:
            ...
        timer.elapsed  # seconds

    Attributes:
        logger: Logger the start/finish lines go to
        operation_name: Label used in the log lines
        start_time: perf_counter() value on entry
        elapsed: Seconds spent inside the block, set on exit
    """

    def __init__(self, logger, operation_name):
        self.logger = logger
        self.operation_name = operation_name
        self.start_time = None
        self.elapsed = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.debug(f"Starting: {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed = time.perf_counter() - self.start_time
        self.logger.debug(f"Completed: {self.operation_name} in {self.elapsed:.3f}s")
        return False


def log_memory_usage(logger, label="Memory usage"):
    """
    Log the resident set size of the planner process at DEBUG.

    Args:
        logger: Logger to write to
        label (str): Prefix for the log line
    """
    try:
        import psutil

        rss_mb = psutil.Process().memory_info().rss / (1024 * 1024)
        logger.debug(f"{label}: {rss_mb:.1f} MB")
    except ImportError:
        logger.debug(f"{label}: (psutil not available)")
    except psutil.Error as e:
        logger.debug(f"{label}: could not read process memory: {e}")


# ---------------------------
# GET PROJECT ROOT
# ---------------------------
_cached_root = None  # resolved once per process


def get_project_root(marker="baseplanner"):
    """
    Walk up from this file to the first directory containing `marker`.

    The result is cached for the rest of the process.

    Args:
        marker: Directory name that identifies the project root

    Returns:
        Path of the project root

    Raises:
        FileNotFoundError: If no parent directory contains `marker`
    """
    global _cached_root
    if _cached_root is not None:
        return _cached_root

    logger = get_logger(__name__)
    here = Path(__file__).resolve().parent
    for candidate in (here, *here.parents):
        if (candidate / marker).is_dir():
            _cached_root = candidate
            logger.debug(f"Project root: {_cached_root}")
            return _cached_root

    logger.error(f"No directory above {here} contains '{marker}'")
    raise FileNotFoundError(f"Could not find project root containing '{marker}'")
