# utils/stage_logging.py
"""Structured success/error records consumed by the metrics sink.

Every pipeline stage reports through these two functions so downstream
dashboards can rely on a single record shape:
``{stage, request_id, year, tokens, cost_usd, duration_ms, error?}``.
"""

from __future__ import annotations

from typing import Any

import structlog

sink_logger = structlog.get_logger("clueforge.sink")

_RECORD_KEYS = ("request_id", "year", "tokens", "cost_usd", "duration_ms")


def _build_record(stage: str, fields: dict[str, Any]) -> dict[str, Any]:
    record: dict[str, Any] = {"stage": stage}
    for key in _RECORD_KEYS:
        if key in fields:
            record[key] = fields[key]
    for key, value in fields.items():
        if key not in record and value is not None:
            record[key] = value
    return record


def describe_error(error: BaseException) -> str:
    """Short, single-line error description without secrets or bodies."""
    message = str(error).splitlines()[0] if str(error) else ""
    name = type(error).__name__
    return f"{name}: {message}" if message else name


def log_stage_success(stage: str, message: str, **fields: Any) -> dict[str, Any]:
    """Emit a success record for ``stage`` and return it."""
    record = _build_record(stage, fields)
    sink_logger.info(message, **record)
    return record


def log_stage_error(
    stage: str, error: BaseException | str, **fields: Any
) -> dict[str, Any]:
    """Emit an error record for ``stage`` and return it."""
    record = _build_record(stage, fields)
    record["error"] = error if isinstance(error, str) else describe_error(error)
    sink_logger.error(f"{stage} stage error", **record)
    return record
