"""
MigrationValidator - checks that both backends answer alike.

The validator executes an operation on REST and on legacy (forced, no
fallback) and scores how similar the two payloads are. The comparison is
structure-aware:

- mappings are compared over the union of their keys; a key present on
  only one side contributes 0 instead of failing the whole comparison
- sequences are compared position by position over the longer length
- numbers score by relative distance
- everything else must be equal
- keys listed in ``ignore_keys`` (timestamps, generated ids) are skipped
  at any depth
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from switchover.routing.router import MigrationRouter

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 0.95


def similarity(left: Any, right: Any, ignore_keys: Collection[str] = ()) -> float:
    """
    Score the similarity of two decoded payloads.

    Args:
        left: First payload
        right: Second payload
        ignore_keys: Mapping keys skipped at any depth

    Returns:
        Score between 0.0 (unrelated) and 1.0 (identical)
    """
    if left is right:
        return 1.0
    if left is None or right is None:
        return 0.0

    if isinstance(left, bool) or isinstance(right, bool):
        return 1.0 if type(left) is type(right) and left == right else 0.0

    if isinstance(left, int | float) and isinstance(right, int | float):
        if left == right:
            return 1.0
        scale = max(abs(left), abs(right))
        return max(0.0, 1.0 - abs(left - right) / scale)

    if isinstance(left, Mapping) and isinstance(right, Mapping):
        keys = (set(left) | set(right)) - set(ignore_keys)
        if not keys:
            return 1.0
        total = 0.0
        for key in keys:
            if key in left and key in right:
                total += similarity(left[key], right[key], ignore_keys)
        return total / len(keys)

    if _is_sequence(left) and _is_sequence(right):
        length = max(len(left), len(right))
        if length == 0:
            return 1.0
        total = sum(
            similarity(a, b, ignore_keys) for a, b in zip(left, right, strict=False)
        )
        return total / length

    return 1.0 if left == right else 0.0


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes)


@dataclass(frozen=True)
class ValidationReport:
    """
    Result of validating one operation.

    Attributes:
        operation: Operation validated
        similarity: Similarity score (0.0 when either call failed)
        tolerance: Minimum score required to pass
        passed: Whether the score reached the tolerance
        error: Message of the error that prevented comparison, if any
    """

    operation: str
    similarity: float
    tolerance: float
    passed: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "similarity": round(self.similarity, 4),
            "tolerance": self.tolerance,
            "passed": self.passed,
            "error": self.error,
        }


class MigrationValidator:
    """
    Sanity-checks a migration by comparing both backends' responses.

    Example:
        >>> validator = MigrationValidator(router)
        >>> report = await validator.validate("getTeams", ignore_keys={"updated_at"})
        >>> report.passed
        True
    """

    def __init__(self, router: MigrationRouter) -> None:
        self._router = router

    async def validate(
        self,
        operation: str,
        data: Any = None,
        *,
        tolerance: float = DEFAULT_TOLERANCE,
        ignore_keys: Collection[str] = (),
    ) -> ValidationReport:
        """
        Execute the operation on both backends and compare the payloads.

        Errors from either backend produce a failed report instead of
        propagating.

        Args:
            operation: Operation key
            data: Payload sent to both backends
            tolerance: Minimum similarity required to pass (0-1)
            ignore_keys: Mapping keys excluded from the comparison

        Returns:
            ValidationReport
        """
        if not 0.0 <= tolerance <= 1.0:
            raise ValueError(f"tolerance must be between 0.0 and 1.0, got {tolerance}")

        try:
            rest_result = await self._router.execute(
                operation, data, force_rest=True, fallback=False
            )
            legacy_result = await self._router.execute(
                operation, data, force_legacy=True, fallback=False
            )
        except Exception as e:
            logger.error("Migration validation error for %s: %s", operation, e)
            return ValidationReport(
                operation=operation,
                similarity=0.0,
                tolerance=tolerance,
                passed=False,
                error=str(e) or e.__class__.__name__,
            )

        score = similarity(rest_result, legacy_result, ignore_keys)
        passed = score >= tolerance
        if passed:
            logger.info("Migration validation passed for %s (%.2f similarity)", operation, score)
        else:
            logger.warning("Migration validation failed for %s (%.2f similarity)", operation, score)
        return ValidationReport(
            operation=operation,
            similarity=score,
            tolerance=tolerance,
            passed=passed,
        )


__all__ = [
    "MigrationValidator",
    "ValidationReport",
    "similarity",
    "DEFAULT_TOLERANCE",
]
