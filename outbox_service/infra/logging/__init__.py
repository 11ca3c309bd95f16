"""Logging infrastructure.

Basic usage:
    import logging

    from outbox_service.infra.logging import setup_logging

    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("Outbox drain pass finished", extra={"processed": 3})
"""

from outbox_service.infra.logging.config import configure_logging, setup_logging
from outbox_service.infra.logging.formatters import JSONFormatter

__all__ = ["JSONFormatter", "configure_logging", "setup_logging"]
