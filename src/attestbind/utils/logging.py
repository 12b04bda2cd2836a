import logging
import sys


def get_logger(level: str | None = None):
    logger = logging.getLogger("attestbind")
    if not logger.handlers:
        h = logging.StreamHandler(sys.stderr)
        fmt = logging.Formatter("[%(asctime)s] %(levelname)s %(message)s")
        h.setFormatter(fmt)
        logger.addHandler(h)
        logger.setLevel(logging.INFO)
    if level:
        logger.setLevel(level.upper())
    return logger
