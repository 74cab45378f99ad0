"""JSON schemas for run report and tool output validation."""

from .report_schemas import (
    CHECK_FLEET_SCHEMA,
    ERROR_SCHEMA,
    RESOLVE_TARGETS_SCHEMA,
    RUN_REPORT_SCHEMA,
)

__all__ = [
    "CHECK_FLEET_SCHEMA",
    "ERROR_SCHEMA",
    "RESOLVE_TARGETS_SCHEMA",
    "RUN_REPORT_SCHEMA",
]
