"""
Backoff policy for transient failures.

Delays are monotonically non-decreasing in the retry number and capped
at ``max_delay``. The coordinator additionally bounds every delay by
the envelope's remaining time-bound window: a retry that would land
past expiry is not attempted at all.

Kinds:
    linear:       initial + step * (n - 1)
    exponential:  initial * factor ** (n - 1)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class BackoffKind(StrEnum):
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class BackoffPolicy:
    """Delay schedule between retries.

    Attributes:
        kind: linear or exponential.
        initial: Delay before the first retry, seconds.
        step: Increment per retry (linear).
        factor: Multiplier per retry (exponential), >= 1.
        max_delay: Upper bound on any single delay, seconds.
    """

    kind: BackoffKind = BackoffKind.EXPONENTIAL
    initial: float = 1.0
    step: float = 1.0
    factor: float = 2.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.initial < 0:
            raise ValueError(f"initial must be >= 0, got: {self.initial}")
        if self.step < 0:
            raise ValueError(f"step must be >= 0, got: {self.step}")
        if self.factor < 1:
            raise ValueError(f"factor must be >= 1, got: {self.factor}")
        if self.max_delay < self.initial:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= initial ({self.initial})"
            )

    def delay(self, retry: int) -> float:
        """Delay before retry number ``retry`` (1-indexed)."""
        if retry < 1:
            raise ValueError(f"retry must be >= 1, got: {retry}")
        if self.kind is BackoffKind.LINEAR:
            raw = self.initial + self.step * (retry - 1)
        else:
            raw = self.initial * self.factor ** (retry - 1)
        return min(raw, self.max_delay)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "initial": self.initial,
            "step": self.step,
            "factor": self.factor,
            "max_delay": self.max_delay,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackoffPolicy:
        defaults = cls()
        return cls(
            kind=BackoffKind(data.get("kind", defaults.kind.value)),
            initial=float(data.get("initial", defaults.initial)),
            step=float(data.get("step", defaults.step)),
            factor=float(data.get("factor", defaults.factor)),
            max_delay=float(data.get("max_delay", defaults.max_delay)),
        )
