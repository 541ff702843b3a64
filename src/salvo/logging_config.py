# salvo/logging_config.py
import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(debug: bool = False, silent: bool = False) -> str:
    if debug:
        return "DEBUG"
    if silent:
        return "WARNING"
    return "INFO"


def setup_logging(level: str = "INFO", log_file: str | None = None) -> logging.Logger:
    """
    Route log records to stderr so stdout carries only stage reports.
    If log_file is provided, records are mirrored there as well.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    root.addHandler(stderr_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        root.info(f"Mirroring logs to {log_file}")

    # aiohttp logs every connection hiccup at DEBUG; per-request failures
    # are already reported through outcomes
    logging.getLogger("aiohttp").setLevel(max(root.level, logging.INFO))

    def log_uncaught(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        root.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))

    sys.excepthook = log_uncaught

    return root
