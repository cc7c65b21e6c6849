"""Metrics derived from stored errors and their recovery attempts."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from .classification import ErrorKind, ErrorSeverity
from .types import ErrorRecord, ErrorReport

TOP_ERRORS = 5


@dataclass(frozen=True)
class ErrorMetrics:
    """Snapshot of error and recovery statistics."""

    total_errors: int = 0
    errors_by_type: dict[ErrorKind, int] = field(
        default_factory=lambda: {kind: 0 for kind in ErrorKind}
    )
    errors_by_severity: dict[ErrorSeverity, int] = field(
        default_factory=lambda: {severity: 0 for severity in ErrorSeverity}
    )
    recovery_success_rate: float = 0.0
    average_recovery_time: float = 0.0  # seconds
    total_recovery_attempts: int = 0
    most_common_errors: list[tuple[ErrorKind, int]] = field(default_factory=list)
    time_range: tuple[Optional[datetime], Optional[datetime]] = (None, None)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        start, end = self.time_range
        return {
            "total_errors": self.total_errors,
            "errors_by_type": {kind.value: count for kind, count in self.errors_by_type.items()},
            "errors_by_severity": {
                severity.value: count for severity, count in self.errors_by_severity.items()
            },
            "recovery_success_rate": self.recovery_success_rate,
            "average_recovery_time": self.average_recovery_time,
            "total_recovery_attempts": self.total_recovery_attempts,
            "most_common_errors": [
                {"type": kind.value, "count": count} for kind, count in self.most_common_errors
            ],
            "time_range": {
                "start": start.isoformat() if start else None,
                "end": end.isoformat() if end else None,
            },
        }


def compute_metrics(
    records: Iterable[ErrorRecord],
    reports: Iterable[ErrorReport]
) -> ErrorMetrics:
    """Derive metrics without modifying records or reports.

    Counts come from the records; recovery statistics from the attempts
    attached to the reports.
    """
    by_type = {kind: 0 for kind in ErrorKind}
    by_severity = {severity: 0 for severity in ErrorSeverity}
    total = 0
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    for record in records:
        total += 1
        by_type[record.kind] = by_type.get(record.kind, 0) + 1
        by_severity[record.severity] = by_severity.get(record.severity, 0) + 1
        if start is None or record.timestamp < start:
            start = record.timestamp
        if end is None or record.timestamp > end:
            end = record.timestamp

    reports = list(reports)
    durations = [
        attempt.duration
        for report in reports
        for attempt in report.recovery_attempts
    ]
    successes = sum(
        1
        for report in reports
        for attempt in report.recovery_attempts
        if attempt.success
    )

    attempts = len(durations)
    success_rate = round(successes / attempts, 2) if attempts > 0 else 0.0
    average_time = round(sum(durations) / attempts, 3) if attempts > 0 else 0.0

    # sorted() is stable, so ties keep ErrorKind declaration order
    ranked = sorted(
        ((kind, count) for kind, count in by_type.items() if count > 0),
        key=lambda item: item[1],
        reverse=True
    )

    return ErrorMetrics(
        total_errors=total,
        errors_by_type=by_type,
        errors_by_severity=by_severity,
        recovery_success_rate=success_rate,
        average_recovery_time=average_time,
        total_recovery_attempts=attempts,
        most_common_errors=ranked[:TOP_ERRORS],
        time_range=(start, end),
    )
