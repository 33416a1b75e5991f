# sky/core/run_context.py
from __future__ import annotations

import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Dict, Optional

# --- Run id (one per script invocation) ---
run_id_var: ContextVar[Optional[str]] = ContextVar("sky_run_id", default=None)


def new_run_id() -> str:
    rid = uuid.uuid4().hex[:12]
    run_id_var.set(rid)
    return rid


def set_run_id(rid: str | None) -> None:
    run_id_var.set(rid)


def get_run_id() -> str:
    return run_id_var.get() or "-"


# --- Mongo command timing (run-scoped) ---

@dataclass
class CommandMetrics:
    command_count: int = 0
    failed_count: int = 0
    total_ms: float = 0.0
    slowest_ms: float = 0.0
    slowest_command: str = ""


command_metrics_var: ContextVar[Optional[CommandMetrics]] = ContextVar(
    "sky_command_metrics", default=None
)


def reset_command_metrics() -> None:
    """Call once per run to start clean metrics."""
    command_metrics_var.set(CommandMetrics())


def get_command_metrics() -> CommandMetrics:
    m = command_metrics_var.get()
    if m is None:
        m = CommandMetrics()
        command_metrics_var.set(m)
    return m


def record_command(duration_ms: float, command_name: str = "", failed: bool = False) -> None:
    """Record one Mongo command timing into the current run's metrics."""
    m = get_command_metrics()
    m.command_count += 1
    m.total_ms += float(duration_ms)
    if failed:
        m.failed_count += 1

    if float(duration_ms) > m.slowest_ms:
        m.slowest_ms = float(duration_ms)
        m.slowest_command = command_name or ""


def get_command_metrics_snapshot() -> Dict[str, Any]:
    """
    Log-friendly snapshot of the current run's command metrics.
    """
    m = command_metrics_var.get()
    if m is None:
        return {
            "mongo_command_count": 0,
            "mongo_failed_count": 0,
            "mongo_total_ms": 0.0,
            "mongo_slowest_ms": 0.0,
            "mongo_slowest_command": "",
        }

    return {
        "mongo_command_count": int(m.command_count),
        "mongo_failed_count": int(m.failed_count),
        "mongo_total_ms": float(m.total_ms),
        "mongo_slowest_ms": float(m.slowest_ms),
        "mongo_slowest_command": m.slowest_command,
    }
