"""Font intelligence pipeline: admission, retry, validation and lifecycle state."""

from fontsense.pipeline.admission import AdmissionController
from fontsense.pipeline.retry import RetryOptions, with_retry
from fontsense.pipeline.state import InvalidTransition, check_transition
from fontsense.pipeline.validation import (
    ValidationResult,
    apply_sanity_rules,
    calculate_confidence,
    confidence_band,
    evaluate,
    validate,
)

__all__ = [
    "AdmissionController",
    "RetryOptions",
    "with_retry",
    "InvalidTransition",
    "check_transition",
    "ValidationResult",
    "apply_sanity_rules",
    "calculate_confidence",
    "confidence_band",
    "evaluate",
    "validate",
]
