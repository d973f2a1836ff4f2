import logging
import os

from gemini_explorer.runtime_config import LOG_LEVEL_ENV, get_data_dir

LOG_FILE_NAME = "gemini_explorer.log"


def setup_logging() -> None:
    """Send application logs to a file under the data directory.

    The console owns the terminal, so nothing is logged to stdout or stderr.
    The level comes from GEMINI_EXPLORER_LOG_LEVEL (default INFO).
    """
    log_dir = get_data_dir()
    log_dir.mkdir(parents=True, exist_ok=True)

    level_name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger("gemini_explorer")
    root.setLevel(level)
    root.propagate = False

    log_path = log_dir / LOG_FILE_NAME
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == str(
            log_path.resolve()
        ):
            return

    file_handler = logging.FileHandler(log_path)
    file_handler.setLevel(level)

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    file_handler.setFormatter(formatter)

    root.addHandler(file_handler)
