#!/usr/bin/env python3
"""
Failure Tracker Module

Collects the outcome of every per-item operation of a processing stage:
- successes (file renamed, duplicate deleted, transcript written, ...)
- failures with a reason and the underlying cause
- integrity anomalies (data problems that are reported but do not stop the run)

Stages never raise for a single item; they record an ItemResult here and move
on. The driver logs each report's summary once the stage is finished.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ItemResult:
    """Outcome of one per-item operation."""

    ok: bool
    item: str
    action: str
    reason: str = ""
    details: str = ""

    @classmethod
    def success(cls, item, action: str, details: str = "") -> "ItemResult":
        return cls(True, str(item), action, "", details)

    @classmethod
    def failure(cls, item, action: str, reason: str, details: str = "") -> "ItemResult":
        return cls(False, str(item), action, reason, details)

    def __bool__(self) -> bool:
        return self.ok


@dataclass
class StageReport:
    """
    Tracks the results of one processing stage.

    Captures successes, failures and integrity anomalies, then produces a
    summary for logging.
    """

    stage: str
    results: List[ItemResult] = field(default_factory=list)
    anomalies: List[Dict[str, Any]] = field(default_factory=list)

    def record(self, result: ItemResult, log: bool = True) -> ItemResult:
        """Add a result and log failures with their cause."""
        self.results.append(result)
        if log and not result.ok:
            logger.error(
                f"could not {result.action} '{result.item}'"
                + (f"; {result.reason}" if result.reason else "")
            )
        return result

    def add_success(self, item, action: str, details: str = "") -> ItemResult:
        return self.record(ItemResult.success(item, action, details))

    def add_failure(self, item, action: str, reason: str, details: str = "") -> ItemResult:
        return self.record(ItemResult.failure(item, action, reason, details))

    def add_anomaly(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """Track a data-integrity anomaly; logged at the highest severity."""
        self.anomalies.append({"message": message, "context": context or {}})
        logger.critical(message)

    @property
    def failures(self) -> List[ItemResult]:
        return [r for r in self.results if not r.ok]

    def count(self, action: Optional[str] = None, ok: Optional[bool] = True) -> int:
        """Count results, optionally filtered by action and outcome."""
        return sum(
            1
            for r in self.results
            if (action is None or r.action == action) and (ok is None or r.ok == ok)
        )

    def get_summary(self) -> Dict[str, int]:
        """
        Get summary statistics of tracked results.

        Returns:
            Dict with counts of successes, failures and anomalies
        """
        failed = len(self.failures)
        return {
            "total": len(self.results),
            "succeeded": len(self.results) - failed,
            "failed": failed,
            "anomalies": len(self.anomalies),
        }

    def log_summary(self) -> None:
        summary = self.get_summary()
        logger.info(
            f"[{self.stage}] {summary['succeeded']} succeeded, {summary['failed']} failed, "
            f"{summary['anomalies']} anomalies"
        )
