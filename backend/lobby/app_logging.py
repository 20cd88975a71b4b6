"""Logging configuration helpers."""

import logging


def configure_logging(app) -> None:
    """Configure the app logger with a single stream handler.

    Runs before ``app.logger`` is first touched so Flask does not attach its
    own default handler as well.
    """
    logger = logging.getLogger(app.import_name)
    logger.setLevel(logging.INFO)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s: %(name)s: %(message)s'))
    logger.addHandler(handler)
    logger.propagate = False
