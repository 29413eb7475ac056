from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FILE_NAME = "fedora-provisioner.log"


def configure_logging(
    log_path: str,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Configure logging.

    Notes:
    - The file handler always records DEBUG, so command stdout/stderr is kept
      even when the console only shows INFO.
    - If the requested log file cannot be opened we fall back to a file in the
      current working directory and keep going.

    Returns the actual file path being used.
    """

    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(logger, "_fedora_provisioner_configured", False):
        return getattr(logger, "_fedora_provisioner_log_path", log_path)

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    file_handler: Optional[logging.Handler] = None
    try:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        chosen_path = log_path
    except OSError:
        chosen_path = str(Path.cwd() / LOG_FILE_NAME)
        file_handler = logging.FileHandler(chosen_path)
    file_handler.setFormatter(fmt)
    file_handler.setLevel(logging.DEBUG)
    logger.addHandler(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter(fmt="%(levelname)s %(message)s"))
        console.setLevel(level)
        logger.addHandler(console)

    setattr(logger, "_fedora_provisioner_configured", True)
    setattr(logger, "_fedora_provisioner_log_path", chosen_path)

    logging.getLogger(__name__).info("Logging initialized (requested=%s, actual=%s)", log_path, chosen_path)
    return chosen_path
