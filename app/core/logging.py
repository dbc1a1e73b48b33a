"""
Logging and error reporting setup.

Modules log through `logging.getLogger(__name__)`; this configures the root
handler once and turns on Sentry when a DSN is configured.
"""

import logging

import sentry_sdk

from app.core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)
    # pymongo is chatty at DEBUG
    logging.getLogger("pymongo").setLevel(logging.WARNING)

    if settings.sentry_dsn:
        sentry_sdk.init(dsn=settings.sentry_dsn, send_default_pii=False)
        logging.getLogger(__name__).info("Sentry error reporting enabled")
