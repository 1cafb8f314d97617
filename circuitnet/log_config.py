import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)-5.5s] [%(name)s] %(message)s"


def setup_logging(level=logging.INFO, stream=None):
    """ Sends circuitnet log records to stdout (or ``stream``). """
    log_formatter = logging.Formatter(LOG_FORMAT)
    package_logger = logging.getLogger("circuitnet")

    # Clear handlers from a previous call, keep the library NullHandler
    for handler in package_logger.handlers[:]:
        if isinstance(handler, logging.NullHandler):
            continue
        package_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(log_formatter)
    package_logger.setLevel(level)
    package_logger.addHandler(console_handler)
    package_logger.debug("Logging configured.")
    return package_logger
