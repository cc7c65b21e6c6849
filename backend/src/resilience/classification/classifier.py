"""Keyword based error classifier."""
import logging
from typing import Protocol

from .categories import Classification, ErrorKind, ErrorSeverity
from .patterns import (
    DEFAULT_KIND,
    DEFAULT_SEVERITY,
    DEFAULT_SUB_CATEGORY,
    KIND_RULES,
    SEVERITY_RULES,
    SUB_CATEGORY_RULES,
    SUGGESTIONS,
    first_match,
)

logger = logging.getLogger(__name__)

ErrorInput = BaseException | str | None


class Classifier(Protocol):
    """Protocol for classifier implementations."""

    def classify(self, error: ErrorInput) -> Classification:
        """Classify an error. Must not raise."""
        ...

    def clear_cache(self) -> None:
        """Drop any cached classifications."""
        ...


def error_text(error: ErrorInput) -> str:
    """Extract the message used for classification."""
    if error is None:
        return ""
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error)


class KeywordClassifier:
    """Classifies errors by matching keywords in their message.

    Classification is a pure function of the message text, so results are
    cached by text.
    """

    def __init__(self, max_cache_size: int = 1024):
        self.max_cache_size = max_cache_size
        self._classification_cache: dict[str, Classification] = {}

    def classify(self, error: ErrorInput) -> Classification:
        """Classify an error into kind, severity, suggestions and sub-category."""
        try:
            text = error_text(error).lower()
        except Exception as e:
            logger.debug(f"Could not read error message: {e}")
            return self._fallback()

        cached = self._classification_cache.get(text)
        if cached is not None:
            return cached

        try:
            classification = self._classify_text(text)
        except Exception as e:
            logger.error(f"Classification failed, using defaults: {e}")
            return self._fallback()

        if len(self._classification_cache) >= self.max_cache_size:
            self._classification_cache.clear()
        self._classification_cache[text] = classification

        logger.debug(
            f"Classified error as {classification.kind.value}/{classification.severity.value} "
            f"({classification.sub_category})"
        )
        return classification

    def clear_cache(self) -> None:
        """Clear the classification cache."""
        self._classification_cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._classification_cache)

    def _classify_text(self, text: str) -> Classification:
        kind = first_match(KIND_RULES, text, DEFAULT_KIND)
        return Classification(
            kind=kind,
            severity=first_match(SEVERITY_RULES, text, DEFAULT_SEVERITY),
            suggestions=SUGGESTIONS.get(kind, SUGGESTIONS[ErrorKind.UNKNOWN]),
            sub_category=first_match(SUB_CATEGORY_RULES, text, DEFAULT_SUB_CATEGORY),
        )

    @staticmethod
    def _fallback() -> Classification:
        return Classification(
            kind=ErrorKind.UNKNOWN,
            severity=ErrorSeverity.LOW,
            suggestions=SUGGESTIONS[ErrorKind.UNKNOWN],
            sub_category=DEFAULT_SUB_CATEGORY,
        )
