import logging

from rich.logging import RichHandler

# -v -> INFO, -vv and beyond -> DEBUG
VERBOSITY_LEVELS = {0: logging.ERROR, 1: logging.INFO}


def setup_logger(name: str = "runforge", level: int = logging.ERROR) -> logging.Logger:
    """Configures and returns a logger with RichHandler."""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # setup may run again when the CLI raises verbosity
    if not logger.handlers:
        handler = RichHandler(rich_tracebacks=True, markup=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        # Records are rendered once, by this handler
        logger.propagate = False

    return logger


def set_verbosity(verbosity: int) -> logging.Logger:
    return setup_logger(level=VERBOSITY_LEVELS.get(verbosity, logging.DEBUG))


# Errors only until the CLI asks for more
logger = setup_logger()
