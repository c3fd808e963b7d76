# core/log_setup.py
# ==============================
# Logging configuration for the CLI entry point
# ==============================

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(verbose: bool = False) -> None:
    """
    Configure root logging once for the process.

    Args:
        verbose: If True log at DEBUG, otherwise only warnings and errors.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # Keep HTTP connection chatter out of verbose diagnosis traces
    logging.getLogger("urllib3").setLevel(logging.WARNING)
