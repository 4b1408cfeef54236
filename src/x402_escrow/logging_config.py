"""
Logging configuration for the x402 escrow facilitator
"""

import logging
import sys

# Third-party loggers that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "web3", "urllib3")


def setup_logging(level: int | str = logging.INFO) -> None:
    """
    Configure root logging with timestamp, file and line number information

    Args:
        level: Logging level or level name (default: INFO)
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(levelname)-8s %(name)s %(filename)s:%(lineno)d %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates on re-configuration
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
