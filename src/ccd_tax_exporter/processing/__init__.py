"""Transaction processing pipeline components."""

from ccd_tax_exporter.processing.classifier import (
    ClassificationInvariantViolation,
    Classifier,
    classify_transactions,
)
from ccd_tax_exporter.processing.deduplicator import (
    Deduplicator,
    merge_histories,
)
from ccd_tax_exporter.processing.retrieval import (
    RetrievalEngine,
    RetrievalFailed,
    RetrievalResult,
)

__all__ = [
    "ClassificationInvariantViolation",
    "Classifier",
    "classify_transactions",
    "Deduplicator",
    "merge_histories",
    "RetrievalEngine",
    "RetrievalFailed",
    "RetrievalResult",
]
