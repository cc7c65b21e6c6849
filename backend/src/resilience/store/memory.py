"""In-memory error store."""
from collections import deque

from ..types import ErrorRecord, ErrorReport, UserAction
from .base import BaseErrorStore


class MemoryErrorStore(BaseErrorStore):
    """In-memory implementation of the error store.

    State lives for the lifetime of the process. Not thread safe: it relies on
    being used from a single event loop.
    """

    def __init__(self, user_action_limit: int = 1000):
        self._records: dict[str, ErrorRecord] = {}
        self._reports: list[ErrorReport] = []
        self._reports_by_error: dict[str, ErrorReport] = {}
        self._user_actions: deque[UserAction] = deque(maxlen=user_action_limit)

    def save_record(self, record: ErrorRecord) -> None:
        self._records[record.id] = record

    def get_record(self, error_id: str) -> ErrorRecord | None:
        return self._records.get(error_id)

    def records(self) -> list[ErrorRecord]:
        return list(self._records.values())

    def add_report(self, report: ErrorReport) -> None:
        self._reports.append(report)
        self._reports_by_error[report.error.id] = report

    def report_for(self, error_id: str) -> ErrorReport | None:
        return self._reports_by_error.get(error_id)

    def reports(self) -> list[ErrorReport]:
        return list(self._reports)

    def add_user_action(self, action: UserAction) -> None:
        self._user_actions.append(action)

    def recent_user_actions(self, count: int) -> list[UserAction]:
        if count <= 0:
            return []
        return list(self._user_actions)[-count:]

    def user_action_count(self) -> int:
        return len(self._user_actions)

    def set_user_action_limit(self, limit: int) -> None:
        if limit != self._user_actions.maxlen:
            self._user_actions = deque(self._user_actions, maxlen=limit)

    def prune(self, keep_reports: int, keep_user_actions: int) -> list[str]:
        count = max(len(self._reports) - max(keep_reports, 0), 0)
        dropped = [report.error.id for report in self._reports[:count]]
        for error_id in dropped:
            self._reports_by_error.pop(error_id, None)
        del self._reports[:count]

        excess = len(self._user_actions) - max(keep_user_actions, 0)
        for _ in range(max(excess, 0)):
            self._user_actions.popleft()

        return dropped

    def clear(self) -> None:
        """Clear all stored data."""
        self._records.clear()
        self._reports.clear()
        self._reports_by_error.clear()
        self._user_actions.clear()
