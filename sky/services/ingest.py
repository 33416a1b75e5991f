# sky/services/ingest.py

r"""
Demo metrics producer: writes the last six minutes of fake samples.

Each run inserts six points into sky.metrics, one minute apart, the newest
stamped at the moment the run started. cpu_load is uniform in [0, 100] with
two decimals, concurrency is a uniform integer in [0, 500000).

Run from project root:

    python -m sky.services.ingest      # or: sky-ingest
"""

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from sky.core.config import Settings, get_settings
from sky.core.errors import RandomGenerationError, log_exception_with_context, setup_logging
from sky.core.run_context import get_command_metrics_snapshot, new_run_id, reset_command_metrics
from sky.db.mongo import MetricsStore, MongoMetricsStore
from sky.models import (
    CONCURRENCY_MAX,
    CONCURRENCY_MIN,
    CPU_LOAD_MAX,
    CPU_LOAD_MIN,
    MetricRecord,
    as_utc_ms,
)

logger = logging.getLogger("sky")

BATCH_SIZE = 6
STEP_MS = 60000
CPU_LOAD_DECIMALS = 2


def utc_now_ms() -> datetime:
    """Current UTC time truncated to whole milliseconds."""
    return as_utc_ms(datetime.now(timezone.utc))


def random_cpu_load(rng: random.Random) -> float:
    value = round(rng.uniform(CPU_LOAD_MIN, CPU_LOAD_MAX), CPU_LOAD_DECIMALS)
    if not CPU_LOAD_MIN <= value <= CPU_LOAD_MAX:
        raise RandomGenerationError(f"cpu_load {value} outside [{CPU_LOAD_MIN}, {CPU_LOAD_MAX}]")
    return value


def random_concurrency(rng: random.Random) -> int:
    value = rng.randrange(CONCURRENCY_MIN, CONCURRENCY_MAX)
    if not CONCURRENCY_MIN <= value < CONCURRENCY_MAX:
        raise RandomGenerationError(
            f"concurrency {value} outside [{CONCURRENCY_MIN}, {CONCURRENCY_MAX})"
        )
    return value


def build_batch(reference: datetime, rng: Optional[random.Random] = None) -> List[MetricRecord]:
    """
    Six records ending at `reference`, oldest first, exactly STEP_MS apart.
    """
    reference = as_utc_ms(reference)
    rng = rng or random.Random()
    records: List[MetricRecord] = []
    for i in range(BATCH_SIZE - 1, -1, -1):
        records.append(
            MetricRecord(
                timestamp=reference - timedelta(milliseconds=i * STEP_MS),
                cpu_load=random_cpu_load(rng),
                concurrency=random_concurrency(rng),
            )
        )
    return records


def run_ingest(
    store: MetricsStore,
    settings: Settings,
    *,
    clock: Callable[[], datetime] = utc_now_ms,
    rng: Optional[random.Random] = None,
) -> List[MetricRecord]:
    # The logged start and the newest stored timestamp must be the same instant.
    start = as_utc_ms(clock())
    logger.info("Ingestion started at: %s", int(start.timestamp()))

    values = build_batch(start, rng)

    logger.info("Inserting documents to MongoDB")
    store.insert_many(settings.mongo_collection, values)
    logger.info("Done")
    return values


def main(store: Optional[MetricsStore] = None) -> None:
    settings = get_settings()
    setup_logging(settings.log_level)
    new_run_id()
    reset_command_metrics()

    try:
        store = store or MongoMetricsStore.from_settings(settings)
        run_ingest(store, settings)
    except Exception:
        log_exception_with_context(
            "[ingest] Failed",
            extra={"database": settings.mongo_database, "collection": settings.mongo_collection},
        )
        raise
    finally:
        if store is not None:
            store.close()
        logger.info("[ingest] Mongo client closed. %s", get_command_metrics_snapshot())


if __name__ == "__main__":
    main()
