"""Predefined keyword rules for classification."""
from dataclasses import dataclass
from typing import Generic, TypeVar

from .categories import ErrorKind, ErrorSeverity

T = TypeVar("T")


@dataclass(frozen=True)
class KeywordRule(Generic[T]):
    """Maps any of a set of lower-case substrings to a value."""

    value: T
    indicators: tuple[str, ...]

    def matches(self, text: str) -> bool:
        """Check if any indicator occurs in already lower-cased text."""
        return any(indicator in text for indicator in self.indicators)


# Evaluated in order, first match wins
KIND_RULES: list[KeywordRule[ErrorKind]] = [
    KeywordRule(ErrorKind.NETWORK, ("network", "fetch", "xhr")),
    KeywordRule(ErrorKind.FILE, ("file", "upload", "download")),
    KeywordRule(ErrorKind.VALIDATION, ("validation", "invalid", "required")),
    KeywordRule(ErrorKind.TIMEOUT, ("timeout", "time out")),
    KeywordRule(ErrorKind.PERMISSION, ("permission", "unauthorized", "forbidden")),
    KeywordRule(ErrorKind.RESOURCE, ("memory", "resource")),
]

SEVERITY_RULES: list[KeywordRule[ErrorSeverity]] = [
    KeywordRule(ErrorSeverity.CRITICAL, ("critical", "fatal", "crash")),
    KeywordRule(ErrorSeverity.HIGH, ("error", "fail")),
    KeywordRule(ErrorSeverity.MEDIUM, ("warning", "invalid")),
]

SUB_CATEGORY_RULES: list[KeywordRule[str]] = [
    KeywordRule("fetch_error", ("fetch",)),
    KeywordRule("upload_error", ("upload",)),
    KeywordRule("download_error", ("download",)),
    KeywordRule("validation_error", ("validation",)),
    KeywordRule("timeout_error", ("timeout",)),
    KeywordRule("permission_error", ("permission",)),
    KeywordRule("memory_error", ("memory",)),
]

DEFAULT_KIND = ErrorKind.UNKNOWN
DEFAULT_SEVERITY = ErrorSeverity.LOW
DEFAULT_SUB_CATEGORY = "general_error"

SUGGESTIONS: dict[ErrorKind, tuple[str, ...]] = {
    ErrorKind.NETWORK: ("Check the network connection", "Retry the request", "Use offline mode"),
    ErrorKind.FILE: ("Check the file format", "Check the file size", "Select the file again"),
    ErrorKind.VALIDATION: ("Check the input format", "Use the suggested values", "Refer to the examples"),
    ErrorKind.TIMEOUT: ("Increase the timeout", "Check the network speed", "Process in smaller batches"),
    ErrorKind.PERMISSION: ("Check the permission settings", "Sign in again", "Contact an administrator"),
    ErrorKind.RESOURCE: ("Close other applications", "Free up memory", "Restart the application"),
    ErrorKind.UNKNOWN: ("Reload the application", "Clear cached data", "Contact technical support"),
}


def first_match(rules: list[KeywordRule[T]], text: str, default: T) -> T:
    """Return the value of the first rule matching text, or default."""
    for rule in rules:
        if rule.matches(text):
            return rule.value
    return default
