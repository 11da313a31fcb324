import os
import sys
from pathlib import Path

from loguru import logger

LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | "
    "{name}:{line} - {message} | {extra}"
)

# (file name, level env var, default level, rotation, retention)
FILE_SINKS = (
    ("app.log", "FILE_LOG_LEVEL", "DEBUG", "10 MB", "7 days"),
    ("error.log", "ERROR_LOG_LEVEL", "ERROR", "5 MB", "30 days"),
)


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def configure_logger(log_dir: Path = Path("logs")) -> None:
    """
    Route billing-service logs to stderr and, unless LOG_TO_FILE is off,
    to rotating files under `log_dir`. Levels come from the environment.
    """
    development = os.getenv("ENV", "development").lower() == "development"

    logger.remove()
    logger.add(
        sys.stderr,
        format=LOG_FORMAT,
        level=os.getenv(
            "CONSOLE_LOG_LEVEL", "DEBUG" if development else "INFO"
        ).upper(),
        diagnose=development,
    )

    if not _env_flag("LOG_TO_FILE"):
        return

    log_dir.mkdir(exist_ok=True)
    for file_name, level_var, default_level, rotation, retention in FILE_SINKS:
        logger.add(
            log_dir / file_name,
            format=LOG_FORMAT,
            level=os.getenv(level_var, default_level).upper(),
            rotation=rotation,
            retention=retention,
            compression="zip",
        )


configure_logger()

log = logger
