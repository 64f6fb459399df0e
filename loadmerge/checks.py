"""Pass/fail aggregation of named checks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


def _percent(part: int, whole: int) -> str:
    return f"{part / whole * 100:.1f}" if whole > 0 else "0.0"


@dataclass
class CheckState:
    """Running counts for one check."""

    total: int = 0
    passed: int = 0


@dataclass(frozen=True)
class CheckResult:
    """Final outcome of one check."""

    name: str
    total: int
    passed: int

    @property
    def failed(self) -> int:
        return self.total - self.passed

    @property
    def success_ratio(self) -> float:
        return self.passed / self.total if self.total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "successRate": _percent(self.passed, self.total),
        }


@dataclass
class CheckTracker:
    """Per-name check counters."""

    states: Dict[str, CheckState] = field(default_factory=dict)

    def record(self, name: str, passed: bool) -> None:
        state = self.states.get(name)
        if state is None:
            state = self.states[name] = CheckState()
        state.total += 1
        if passed:
            state.passed += 1

    def merge(self, other: "CheckTracker") -> "CheckTracker":
        """Return a new tracker with the counts of both."""
        merged: Dict[str, CheckState] = {}
        for source in (self.states, other.states):
            for name, state in source.items():
                target = merged.setdefault(name, CheckState())
                target.total += state.total
                target.passed += state.passed
        return CheckTracker(states=merged)

    @property
    def total(self) -> int:
        return sum(state.total for state in self.states.values())

    def finalize(self) -> List[CheckResult]:
        """Return results sorted worst success rate first (ties by name)."""
        results = [
            CheckResult(name=name, total=state.total, passed=state.passed)
            for name, state in self.states.items()
        ]
        return sorted(results, key=lambda r: (r.success_ratio, r.name))

    def totals(self) -> Dict[str, Any]:
        """Return overall pass/fail counts and success rate."""
        total = self.total
        passed = sum(state.passed for state in self.states.values())
        return {
            "totalPassed": passed,
            "totalFailed": total - passed,
            "overallSuccessRate": _percent(passed, total),
        }
