# sky/models.py
from datetime import datetime, timezone
from typing import Any, Dict, List, Union

from pydantic import BaseModel, Field, field_validator

# Time-series collection options; the storage layer owns bucketing and expiry.
TIME_FIELD = "timestamp"
GRANULARITY = "minutes"
EXPIRE_AFTER_SECONDS = 315360000  # 10 years

CPU_LOAD_MIN = 0
CPU_LOAD_MAX = 100
CONCURRENCY_MIN = 0
CONCURRENCY_MAX = 500000


def time_series_options() -> Dict[str, str]:
    """The `timeseries` sub-document passed to createCollection."""
    return {"timeField": TIME_FIELD, "granularity": GRANULARITY}


def as_utc_ms(ts: datetime) -> datetime:
    """`ts` as aware UTC truncated to whole milliseconds; naive values are read as UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    else:
        ts = ts.astimezone(timezone.utc)
    return ts.replace(microsecond=(ts.microsecond // 1000) * 1000)


def from_epoch_ms(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def to_epoch_ms(ts: datetime) -> int:
    return round(ts.timestamp() * 1000)


class MetricRecord(BaseModel):
    """
    One sample stored in the metrics collection.

    Note:
    - timestamp is kept at millisecond precision, the resolution of a BSON date.
    - cpu_load stays an int when given one (fixture batch) and a float otherwise.
    """

    timestamp: datetime
    cpu_load: Union[int, float]
    concurrency: int = Field(ge=CONCURRENCY_MIN)

    @field_validator("timestamp")
    @classmethod
    def _truncate_to_ms(cls, v: datetime) -> datetime:
        return as_utc_ms(v)

    @field_validator("cpu_load")
    @classmethod
    def _cpu_load_in_range(cls, v: Union[int, float]) -> Union[int, float]:
        if not CPU_LOAD_MIN <= v <= CPU_LOAD_MAX:
            raise ValueError(f"cpu_load must be within [{CPU_LOAD_MIN}, {CPU_LOAD_MAX}]")
        return v

    def to_document(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "cpu_load": self.cpu_load,
            "concurrency": self.concurrency,
        }


# Fixed bootstrap batch: (epoch ms, cpu_load, concurrency)
_SAMPLE_ROWS = [
    (1501685060000, 48, 365984),
    (1501685120000, 66, 125847),
    (1501685180000, 55, 500000),
    (1501685240000, 100, 5),
    (1501685300000, 50, 12589),
    (1501685360000, 1, 10000),
]


def sample_metrics() -> List[MetricRecord]:
    return [
        MetricRecord(timestamp=from_epoch_ms(ms), cpu_load=load, concurrency=conc)
        for ms, load, conc in _SAMPLE_ROWS
    ]


SAMPLE_METRICS: List[MetricRecord] = sample_metrics()
