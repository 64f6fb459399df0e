"""Request failure classification."""

from loadmerge.errors.classifier import (
    ErrorClassifier,
    ErrorRecord,
    category_label,
    classify,
)

__all__ = [
    "ErrorClassifier",
    "ErrorRecord",
    "category_label",
    "classify",
]
