# sky/services/bootstrap.py

r"""
One-time provisioning of the sky metrics store.

Against the configured MongoDB (defaults: mongodb://localhost:27017, db "sky"):

- User: user / password with dbOwner on "sky"
- Collection: "metrics", time-series on "timestamp", minute granularity,
  records expire after 10 years
- Data: six fixed sample points (2017-08-02, one minute apart)

Not idempotent on purpose:
- A second run fails loudly at user creation (or collection creation)
  before any sample is inserted twice.

Run from project root:

    source ./.venv/bin/activate
    python -m sky.services.bootstrap      # or: sky-bootstrap
"""

import logging
from typing import Optional

from sky.core.config import Settings, get_settings
from sky.core.errors import log_exception_with_context, setup_logging
from sky.core.run_context import get_command_metrics_snapshot, new_run_id, reset_command_metrics
from sky.db.mongo import MetricsStore, MongoMetricsStore
from sky.models import SAMPLE_METRICS

logger = logging.getLogger("sky")

APP_USER_ROLE = "dbOwner"


def run_bootstrap(store: MetricsStore, settings: Settings) -> int:
    """
    Create the app user, the time-series collection and the fixture batch,
    in that order. Every failure propagates; nothing is retried.
    """
    store.create_user(
        settings.mongo_app_user,
        settings.mongo_app_password,
        [{"role": APP_USER_ROLE, "db": settings.mongo_database}],
    )
    store.create_time_series_collection(settings.mongo_collection)

    inserted = store.insert_many(settings.mongo_collection, SAMPLE_METRICS)
    logger.info(
        "[bootstrap] Inserted %s sample records into %s.%s",
        inserted,
        settings.mongo_database,
        settings.mongo_collection,
    )
    return inserted


def main(store: Optional[MetricsStore] = None) -> None:
    settings = get_settings()
    setup_logging(settings.log_level)
    new_run_id()
    reset_command_metrics()

    logger.info("[bootstrap] Provisioning %s (db=%s)", settings.redacted_uri(), settings.mongo_database)

    try:
        store = store or MongoMetricsStore.from_settings(settings)
        run_bootstrap(store, settings)
        logger.info("[bootstrap] Done.")
    except Exception:
        log_exception_with_context(
            "[bootstrap] Failed",
            extra={"database": settings.mongo_database, "collection": settings.mongo_collection},
        )
        raise
    finally:
        if store is not None:
            store.close()
        logger.info("[bootstrap] Mongo client closed. %s", get_command_metrics_snapshot())


if __name__ == "__main__":
    main()
