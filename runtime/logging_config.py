import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def setup_logging(
    log_file: Optional[str] = None,
    *,
    quiet: bool = False,
    debug: bool = False,
) -> logging.Logger:
    """Configure and return the shared `tissue_mesh` logger.

    Failed mesh edits are reported at ERROR level. With ``debug`` the trace of
    successful edits (``insert: ids=[...]``) and lazily loaded actor modules
    is shown on every handler. No file is written unless ``log_file`` is given;
    a log file that cannot be opened is reported as a warning on the remaining
    handlers.
    """
    logger = logging.getLogger("tissue_mesh")
    # Keep propagation enabled so pytest's caplog sees records even when quiet.
    logger.propagate = True

    level = logging.DEBUG if debug else logging.INFO
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    if not quiet:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, mode="w")
        except OSError as exc:
            logger.warning("Could not open log file '%s': %s", log_file, exc)
        else:
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger
