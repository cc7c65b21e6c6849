"""
Exceptions for the error resilience subsystem.
"""
from typing import Optional


class ResilienceError(Exception):
    """Base exception for the resilience subsystem."""


class ConfigurationError(ResilienceError):
    """Raised when an unknown or invalid configuration option is supplied."""

    def __init__(self, message: str, option: Optional[str] = None):
        super().__init__(message)
        self.option = option


class RecoveryStepError(ResilienceError):
    """Raised by a recovery action to fail its step with a reason."""

    def __init__(self, message: str, action: str):
        super().__init__(message)
        self.action = action


class RecoveryTimeoutError(ResilienceError):
    """Describes a recovery sequence that ran past its deadline."""

    def __init__(self, message: str, timeout: float):
        super().__init__(message)
        self.timeout = timeout
