"""Error kinds, severities and the category catalog."""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ErrorKind(Enum):
    """Closed set of error kinds assigned by classification."""

    NETWORK = "network"
    FILE = "file"
    VALIDATION = "validation"
    TIMEOUT = "timeout"
    PERMISSION = "permission"
    RESOURCE = "resource"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class CategoryDefinition:
    """Static description of an error category."""

    id: str
    name: str
    description: str
    severity: ErrorSeverity
    auto_recovery: bool
    recovery_strategies: tuple[str, ...] = ()
    prevention_tips: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "severity": self.severity.value,
            "auto_recovery": self.auto_recovery,
            "recovery_strategies": list(self.recovery_strategies),
            "prevention_tips": list(self.prevention_tips),
        }


@dataclass(frozen=True)
class Classification:
    """Result of classifying one failure."""

    kind: ErrorKind
    severity: ErrorSeverity
    suggestions: tuple[str, ...] = field(default_factory=tuple)
    sub_category: str = "general_error"


FALLBACK_CATEGORY_ID = "system_resource"

DEFAULT_CATEGORIES: list[CategoryDefinition] = [
    CategoryDefinition(
        id="network_connectivity",
        name="Network connectivity error",
        description="Errors caused by network connections or remote requests",
        severity=ErrorSeverity.HIGH,
        auto_recovery=True,
        recovery_strategies=("retry_request", "offline_mode", "cache_fallback"),
        prevention_tips=(
            "Check the network connection",
            "Use offline mode",
            "Clear cached data",
        ),
    ),
    CategoryDefinition(
        id="file_processing",
        name="File processing error",
        description="Errors while uploading, downloading or processing files",
        severity=ErrorSeverity.MEDIUM,
        auto_recovery=True,
        recovery_strategies=("retry_upload", "chunk_upload", "format_conversion"),
        prevention_tips=(
            "Check the file format",
            "Stay within the file size limit",
            "Use a supported file type",
        ),
    ),
    CategoryDefinition(
        id="validation_error",
        name="Data validation error",
        description="Input data failed validation",
        severity=ErrorSeverity.LOW,
        auto_recovery=False,
        recovery_strategies=("user_correction", "default_values", "skip_validation"),
        prevention_tips=(
            "Check the input format",
            "Refer to the sample data",
            "Use the suggested values",
        ),
    ),
    CategoryDefinition(
        id="system_resource",
        name="System resource error",
        description="Out of memory or performance related errors",
        severity=ErrorSeverity.CRITICAL,
        auto_recovery=True,
        recovery_strategies=("memory_cleanup", "reduce_quality", "restart_app"),
        prevention_tips=(
            "Close other applications",
            "Clear cached data",
            "Restart the application",
        ),
    ),
]

_FALLBACK_CATEGORY = next(c for c in DEFAULT_CATEGORIES if c.id == FALLBACK_CATEGORY_ID)

# Category used for each kind
KIND_CATEGORY_MAP: dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "network_connectivity",
    ErrorKind.FILE: "file_processing",
    ErrorKind.VALIDATION: "validation_error",
    ErrorKind.TIMEOUT: "network_connectivity",
    ErrorKind.PERMISSION: "system_resource",
    ErrorKind.RESOURCE: "system_resource",
    ErrorKind.UNKNOWN: "system_resource",
}


class CategoryRegistry:
    """Catalog of error categories, seeded once at construction."""

    def __init__(self, categories: list[CategoryDefinition] | None = None):
        self._categories: dict[str, CategoryDefinition] = {}
        for category in DEFAULT_CATEGORIES if categories is None else categories:
            self.register(category)

    def register(self, category: CategoryDefinition) -> None:
        """Add a category, replacing any entry with the same id."""
        self._categories[category.id] = category

    def get(self, category_id: str) -> CategoryDefinition | None:
        """Look up a category by id."""
        return self._categories.get(category_id)

    def get_or_default(self, category_id: str) -> CategoryDefinition:
        """Look up a category, falling back to the system resource category."""
        category = self._categories.get(category_id)
        if category is not None:
            return category

        logger.debug(f"Unknown category '{category_id}', using '{FALLBACK_CATEGORY_ID}'")
        fallback = self._categories.get(FALLBACK_CATEGORY_ID)
        if fallback is not None:
            return fallback
        return _FALLBACK_CATEGORY

    def for_kind(self, kind: ErrorKind) -> CategoryDefinition:
        """Resolve the category for an error kind."""
        return self.get_or_default(KIND_CATEGORY_MAP.get(kind, FALLBACK_CATEGORY_ID))

    def ids(self) -> list[str]:
        return list(self._categories)

    def all(self) -> list[CategoryDefinition]:
        return list(self._categories.values())

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._categories

    def __len__(self) -> int:
        return len(self._categories)

