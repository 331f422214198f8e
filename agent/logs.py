"""File-backed component loggers."""

import logging
import os


def build_logger(name: str, log_dir: str, filename: str) -> logging.Logger:
    """Return a logger writing to ``log_dir/filename``, configured once per name."""
    os.makedirs(log_dir, exist_ok=True)
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    handler = logging.FileHandler(os.path.join(log_dir, filename), encoding="utf-8")
    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False
    return logger
