"""Error classification and recovery catalogs."""
from .categories import (
    CategoryDefinition,
    CategoryRegistry,
    Classification,
    ErrorKind,
    ErrorSeverity,
)
from .classifier import Classifier, KeywordClassifier
from .strategies import (
    RecoveryAction,
    RecoveryStep,
    StrategyDefinition,
    StrategyRegistry,
)

__all__ = [
    "Classifier",
    "KeywordClassifier",
    "Classification",
    "ErrorKind",
    "ErrorSeverity",
    "CategoryDefinition",
    "CategoryRegistry",
    "RecoveryAction",
    "RecoveryStep",
    "StrategyDefinition",
    "StrategyRegistry",
]
