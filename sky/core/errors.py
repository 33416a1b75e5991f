# sky/core/errors.py

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

from sky.core.run_context import get_run_id

logger = logging.getLogger("sky")

LOG_FORMAT = "%(levelname)s %(name)s run_id=%(run_id)s %(message)s"


class SeedError(Exception):
    """Base class for every failure the seeding scripts surface."""


class DuplicateCredentialError(SeedError):
    """The database user being created already exists."""


class CollectionAlreadyExistsError(SeedError):
    """The time-series collection being created already exists."""


class StorageConnectionError(SeedError, ConnectionError):
    """No usable MongoDB server could be reached."""


class WriteError(SeedError):
    """The bulk insert was rejected by the server."""


class RandomGenerationError(SeedError):
    """The random source produced a value outside the requested range."""


class RunIdFilter(logging.Filter):
    """
    Injects run_id into every LogRecord as `record.run_id`.
    Falls back to "-" outside a run.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = get_run_id()
        return True


def install_run_id_logging(
    logger_name: str = "sky",
    *,
    include_root: bool = True,
) -> None:
    """
    Attach RunIdFilter so logs can include %(run_id)s in the formatter.
    """
    filt = RunIdFilter()

    targets = [logging.getLogger(logger_name)]
    if include_root:
        targets.append(logging.getLogger())

    # Safe to call from every main(): each logger keeps at most one RunIdFilter.
    for target in targets:
        if not any(isinstance(f, RunIdFilter) for f in target.filters):
            target.addFilter(filt)


_old_factory = logging.getLogRecordFactory()


def _record_factory(*args, **kwargs):
    # Filters only run on the logger they are attached to; pymongo's own
    # loggers bypass them, so every record gets a default run_id here.
    record = _old_factory(*args, **kwargs)
    if not hasattr(record, "run_id"):
        record.run_id = get_run_id()
    return record


def setup_logging(level: str = "INFO") -> None:
    """
    Progress lines go to stdout. Call once from a script's main().
    """
    logging.setLogRecordFactory(_record_factory)
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stdout,
    )
    install_run_id_logging()


def log_exception_with_context(
    message: str,
    *,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """
    Log the currently-handled exception with its stack trace and run context.

    `extra` items are appended to the message as key=value pairs, since the
    console format does not render arbitrary record attributes.

    Example:
        try:
            ...
        except SeedError:
            log_exception_with_context(
                "Bootstrap failed",
                extra={"database": "sky"},
            )
            raise
    """
    if extra:
        context = " ".join(f"{k}={v}" for k, v in extra.items())
        message = f"{message} {context}"

    # logger.exception includes the stack trace of the currently-handled exception
    logger.exception(message)
