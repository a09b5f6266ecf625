import logging

package_logger = logging.getLogger("ledger_stats")

# Libraries that log every frame at DEBUG
NOISY_LOGGERS = ("websockets",)


def setup_logging(log_level: str, logger: logging.Logger) -> None:
    """Configure root logging and the package logger at the given level.

    Transport libraries are held at INFO or above so that debug output shows
    ledger scans rather than raw websocket frames.
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logger.setLevel(numeric_level)
    package_logger.setLevel(numeric_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.INFO))
    logger.debug(f"Logging initialized at level {log_level.upper()}")


def make_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
