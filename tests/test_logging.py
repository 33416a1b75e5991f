import logging

from sky.core.errors import (
    DuplicateCredentialError,
    RunIdFilter,
    SeedError,
    StorageConnectionError,
    install_run_id_logging,
    log_exception_with_context,
)
from sky.core.run_context import (
    get_command_metrics_snapshot,
    get_run_id,
    new_run_id,
    record_command,
    set_run_id,
)
from sky.services import ingest
from tests.conftest import FakeStore


def _record() -> logging.LogRecord:
    return logging.LogRecord("sky", logging.INFO, __file__, 1, "hello", None, None)


def test_run_id_filter_defaults_outside_a_run():
    rec = _record()
    assert RunIdFilter().filter(rec) is True
    assert rec.run_id == "-"


def test_run_id_filter_uses_current_run():
    rid = new_run_id()
    assert get_run_id() == rid
    rec = _record()
    RunIdFilter().filter(rec)
    assert rec.run_id == rid


def test_log_exception_with_context_appends_extras(caplog):
    set_run_id("abc123")
    try:
        raise DuplicateCredentialError("user 'user' already exists")
    except SeedError:
        log_exception_with_context("Bootstrap failed", extra={"database": "sky"})

    rec = caplog.records[-1]
    assert rec.levelno == logging.ERROR
    assert rec.getMessage() == "Bootstrap failed database=sky"
    assert rec.exc_info is not None


def test_error_taxonomy():
    assert issubclass(StorageConnectionError, SeedError)
    assert issubclass(StorageConnectionError, ConnectionError)


def test_command_metrics_snapshot_empty_then_filled():
    empty = get_command_metrics_snapshot()
    assert empty["mongo_command_count"] == 0

    record_command(12.5, "insert")
    record_command(3.0, "ping")
    snap = get_command_metrics_snapshot()
    assert snap["mongo_command_count"] == 2
    assert snap["mongo_slowest_ms"] == 12.5
    assert snap["mongo_slowest_command"] == "insert"


def test_run_id_filter_installed_once_across_runs():
    sky_logger = logging.getLogger("sky")
    root = logging.getLogger()

    for _ in range(3):
        install_run_id_logging()

    assert sum(isinstance(f, RunIdFilter) for f in sky_logger.filters) == 1
    assert sum(isinstance(f, RunIdFilter) for f in root.filters) == 1


def test_repeated_main_calls_do_not_stack_filters():
    for _ in range(3):
        ingest.main(store=FakeStore())

    assert sum(isinstance(f, RunIdFilter) for f in logging.getLogger("sky").filters) == 1
    assert sum(isinstance(f, RunIdFilter) for f in logging.getLogger().filters) == 1
