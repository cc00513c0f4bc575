# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Central logging utilities for the issuance service and its workers.

Key Features
------------
1. configure_logging(): idempotent initialization of the root logger.
2. get_logger(name): helper that always returns a configured logger.
3. RequestIdFilter: stamps ``request_id`` on records so HTTP logs correlate.

Modules log through ``logging.getLogger(__name__)``; only process entry
points (API lifespan, worker runner) call ``configure_logging``.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Final

from beartype import beartype

__all__: Final = [
    "configure_logging",
    "get_logger",
    "request_id_var",
    "RequestIdFilter",
]

_DEFAULT_LOG_FORMAT: Final = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"
)
_is_configured: bool = False

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    """Attach the current request id (or ``-``) to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


@beartype
def configure_logging(
    *, level: int | str = logging.INFO, fmt: str = _DEFAULT_LOG_FORMAT
) -> None:
    """Configure the root logger exactly once.

    Calling this function multiple times is safe – configuration will only
    be applied on the first invocation.
    """
    global _is_configured
    if _is_configured:
        return

    logging.basicConfig(level=level, format=fmt)
    for handler in logging.getLogger().handlers:
        handler.addFilter(RequestIdFilter())
    _is_configured = True


@beartype
def get_logger(name: str | None = None, *, level: int | None = None) -> logging.Logger:
    """Return a module-scoped logger that is guaranteed to be configured."""
    configure_logging()
    logger = logging.getLogger(name or "lifeshield")
    if level is not None:
        logger.setLevel(level)
    return logger
