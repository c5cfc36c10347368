"""
Result types for snapshot validation.

The validator reports every problem it finds instead of stopping at the
first one. Problems tied to one storage address carry its position in the
snapshot arrays under ``context["index"]``, so they can be grouped per
address in reports.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class ErrorSeverity(Enum):
    ERROR = "error"  # One field or entry is wrong; checking went on
    CRITICAL = "critical"  # Nothing past this point could be checked


@dataclass
class ProcessingError:
    """
    One problem found in a snapshot document.

    Attributes:
        source: Check that found it ("snapshot_field", "snapshot_keys", ...)
        message: Human-readable description naming the offending field
        severity: How severe the problem is
        context: Where it was found, e.g. the address index and the key
    """

    source: str
    message: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def address_index(self) -> Optional[int]:
        return self.context.get("index")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "message": self.message,
            "severity": self.severity.value,
            "addressIndex": self.address_index,
            "context": self.context,
        }


@dataclass
class Result(Generic[T]):
    """
    Outcome of a validation: the summary on success, every problem otherwise.

    Attributes:
        success: Whether the document passed every check
        data: The summary if successful
        errors: Problems found, in the order they were detected
    """

    success: bool
    data: Optional[T] = None
    errors: List[ProcessingError] = field(default_factory=list)

    @classmethod
    def ok(cls, data: T) -> "Result[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail_many(cls, errors: List[ProcessingError]) -> "Result[T]":
        """Create a failed result carrying every collected error."""
        if not errors:
            raise ValueError("fail_many requires at least one error")
        return cls(success=False, errors=list(errors))

    @classmethod
    def fail_with_message(
        cls,
        source: str,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[Dict[str, Any]] = None,
    ) -> "Result[T]":
        """Create a failed result with a single problem."""
        return cls.fail_many(
            [ProcessingError(source, message, severity, context or {})]
        )

    def is_critical(self) -> bool:
        """True when validation stopped before the per-address checks."""
        return any(e.severity is ErrorSeverity.CRITICAL for e in self.errors)

    def get_error_messages(self) -> List[str]:
        return [e.message for e in self.errors]

    def errors_by_address(self) -> Dict[Optional[int], List[ProcessingError]]:
        """
        Group problems by storage address index.

        Document-level problems (missing fields, array length mismatches)
        are grouped under ``None``. Keys keep first-seen order.
        """
        grouped: Dict[Optional[int], List[ProcessingError]] = {}
        for error in self.errors:
            grouped.setdefault(error.address_index, []).append(error)
        return grouped

    def count_by_source(self) -> Dict[str, int]:
        return dict(Counter(e.source for e in self.errors))

    def to_dict(self) -> Dict[str, Any]:
        """Validation report for JSON output."""
        return {
            "valid": self.success,
            "problemCount": len(self.errors),
            "problemsBySource": self.count_by_source(),
            "errors": [e.to_dict() for e in self.errors],
        }
