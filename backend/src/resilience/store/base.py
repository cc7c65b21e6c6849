"""
Base implementation for error stores.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..snapshot import StorageState
from ..types import ErrorRecord, ErrorReport, RecoveryAttempt, UserAction


logger = logging.getLogger(__name__)


class BaseErrorStore(ABC):
    """Holds error records, their reports and the user-action history.

    Only the store mutates these collections; callers get copies of the
    containers (the records themselves are shared).
    """

    @abstractmethod
    def save_record(self, record: ErrorRecord) -> None:
        """Store or replace an error record."""

    @abstractmethod
    def get_record(self, error_id: str) -> Optional[ErrorRecord]:
        """Load an error record by id."""

    @abstractmethod
    def records(self) -> list[ErrorRecord]:
        """All records in insertion order."""

    @abstractmethod
    def add_report(self, report: ErrorReport) -> None:
        """Store the report created for a record."""

    @abstractmethod
    def report_for(self, error_id: str) -> Optional[ErrorReport]:
        """Find the report wrapping a record."""

    @abstractmethod
    def reports(self) -> list[ErrorReport]:
        """All reports in insertion order."""

    @abstractmethod
    def add_user_action(self, action: UserAction) -> None:
        """Append to the capped user-action history."""

    @abstractmethod
    def recent_user_actions(self, count: int) -> list[UserAction]:
        """The newest ``count`` user actions, oldest first."""

    @abstractmethod
    def user_action_count(self) -> int:
        """Number of user actions held."""

    @abstractmethod
    def set_user_action_limit(self, limit: int) -> None:
        """Change the user-action history cap, dropping the oldest entries."""

    @abstractmethod
    def prune(self, keep_reports: int, keep_user_actions: int) -> list[str]:
        """Drop the oldest reports and user actions.

        Returns:
            Error ids whose reports were dropped
        """

    @abstractmethod
    def clear(self) -> None:
        """Remove everything."""

    def append_attempt(self, error_id: str, attempt: RecoveryAttempt) -> bool:
        """
        Append a recovery attempt to the report of an error.

        Returns:
            False when the error has no report (reporting disabled or pruned)
        """
        report = self.report_for(error_id)
        if report is None:
            logger.debug(f"No report for error {error_id}, attempt not recorded")
            return False
        report.recovery_attempts.append(attempt)
        return True

    def get_reports(self, limit: int = 50) -> list[ErrorReport]:
        """Newest reports first."""
        if limit <= 0:
            return []
        # later insertion wins ties between equal timestamps
        ordered = sorted(
            enumerate(self.reports()),
            key=lambda item: (item[1].timestamp, item[0]),
            reverse=True
        )
        return [report for _, report in ordered[:limit]]

    def storage_state(self, cache_entries: int = 0) -> StorageState:
        return StorageState(
            cache_entries=cache_entries,
            user_actions=self.user_action_count(),
            reports=len(self.reports()),
        )
