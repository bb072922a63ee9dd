"""Logging for the ``ledger_views`` package.

All package loggers hang off ``"ledger_views"``. Library modules only call
:func:`get_logger` and emit ``event:name key=value`` messages with ``%``-style
arguments, e.g. ``_logger.info("bulk_import:submitted job_id=%s count=%d",
job_id, n)``. Handlers are the host's business; the CLI installs one through
:func:`configure_logging`.

The level comes from the explicit argument, else ``LEDGER_VIEWS_LOG_LEVEL``,
else ``INFO``.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "ledger_views"
_LEVEL_ENV_VAR = "LEDGER_VIEWS_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# The handler installed by configure_logging(); None until then.
_handler: logging.Handler | None = None


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = getattr(logging, name, None)
        return numeric if isinstance(numeric, int) else logging.INFO
    env_val = os.getenv(_LEVEL_ENV_VAR)
    return _parse_level(env_val) if env_val else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
    force: bool = False,
) -> logging.Handler:
    """Install the package's single ``StreamHandler`` and return it.

    A second call is a no-op returning the existing handler unless ``force``
    is set, in which case the old handler is replaced (used when the CLI is
    given an explicit ``--log-level``).
    """

    global _handler
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _handler is not None:
        if not force:
            return _handler
        pkg_logger.removeHandler(_handler)

    for h in list(pkg_logger.handlers):
        if isinstance(h, logging.NullHandler):
            pkg_logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))
    pkg_logger.addHandler(handler)
    pkg_logger.setLevel(resolved)
    pkg_logger.propagate = False
    _handler = handler

    pkg_logger.debug("logging:configured level=%s", logging.getLevelName(resolved))
    return handler


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``; unconfigured, the package stays silent."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if _handler is None and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
