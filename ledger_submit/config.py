"""
Coordinator configuration.

Config is a frozen dataclass. ``from_dict()`` validates raw input
against CONFIG_SCHEMA (JSON Schema) before building it, so bad values
from files or environment fail loudly at load time, not mid-submission.

Environment variables (``from_env``):
    LEDGER_SUBMIT_POLL_INTERVAL     seconds between lookups
    LEDGER_SUBMIT_MAX_ATTEMPTS      submission attempts per envelope
    LEDGER_SUBMIT_MAX_POLLS         lookups per submission (unset = no cap)
    LEDGER_SUBMIT_EXPIRY_MARGIN     seconds past time_bound_max before
                                    the final confirming lookup
    LEDGER_SUBMIT_BACKOFF_KIND      linear | exponential
    LEDGER_SUBMIT_BACKOFF_INITIAL
    LEDGER_SUBMIT_BACKOFF_STEP
    LEDGER_SUBMIT_BACKOFF_FACTOR
    LEDGER_SUBMIT_BACKOFF_MAX_DELAY
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import jsonschema  # type: ignore[import-untyped]

from ledger_submit.backoff import BackoffPolicy

ENV_PREFIX = "LEDGER_SUBMIT_"

# Lookup cap for envelopes without time_bound_max when max_polls is unset.
UNBOUNDED_POLL_LIMIT = 60

CONFIG_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "poll_interval": {"type": "number", "exclusiveMinimum": 0},
        "max_attempts": {"type": "integer", "minimum": 1},
        "max_polls": {"type": ["integer", "null"], "minimum": 1},
        "expiry_margin": {"type": "number", "exclusiveMinimum": 0},
        "backoff": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "kind": {"enum": ["linear", "exponential"]},
                "initial": {"type": "number", "minimum": 0},
                "step": {"type": "number", "minimum": 0},
                "factor": {"type": "number", "minimum": 1},
                "max_delay": {"type": "number", "minimum": 0},
            },
        },
    },
}

_ENV_FIELDS: dict[str, tuple[str, type]] = {
    "POLL_INTERVAL": ("poll_interval", float),
    "MAX_ATTEMPTS": ("max_attempts", int),
    "MAX_POLLS": ("max_polls", int),
    "EXPIRY_MARGIN": ("expiry_margin", float),
}

_ENV_BACKOFF_FIELDS: dict[str, tuple[str, type]] = {
    "BACKOFF_KIND": ("kind", str),
    "BACKOFF_INITIAL": ("initial", float),
    "BACKOFF_STEP": ("step", float),
    "BACKOFF_FACTOR": ("factor", float),
    "BACKOFF_MAX_DELAY": ("max_delay", float),
}


@dataclass(frozen=True)
class CoordinatorConfig:
    """Retry and polling knobs for SubmissionCoordinator.

    Attributes:
        poll_interval: Seconds between transaction lookups.
        max_attempts: Maximum submission attempts of one envelope
            (first send included) before reporting TIMED_OUT. Also caps
            consecutive transient lookup failures.
        max_polls: Maximum lookups while waiting for inclusion. None means
            no cap for bounded envelopes (they stop at expiry) and
            UNBOUNDED_POLL_LIMIT for unbounded ones.
        expiry_margin: Seconds past time_bound_max to wait before the
            final confirming lookup.
        backoff: Delay schedule for transient failures.
    """

    poll_interval: float = 2.0
    max_attempts: int = 5
    max_polls: int | None = None
    expiry_margin: float = 1.0
    backoff: BackoffPolicy = field(default_factory=BackoffPolicy)

    def __post_init__(self) -> None:
        jsonschema.validate(instance=self.to_dict(), schema=CONFIG_SCHEMA)

    def to_dict(self) -> dict[str, Any]:
        return {
            "poll_interval": self.poll_interval,
            "max_attempts": self.max_attempts,
            "max_polls": self.max_polls,
            "expiry_margin": self.expiry_margin,
            "backoff": self.backoff.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CoordinatorConfig:
        """Build config from a plain dict. Missing keys take defaults.

        Raises:
            jsonschema.ValidationError: If ``data`` violates CONFIG_SCHEMA.
        """
        jsonschema.validate(instance=dict(data), schema=CONFIG_SCHEMA)
        defaults = cls()
        return cls(
            poll_interval=float(data.get("poll_interval", defaults.poll_interval)),
            max_attempts=int(data.get("max_attempts", defaults.max_attempts)),
            max_polls=data.get("max_polls", defaults.max_polls),
            expiry_margin=float(data.get("expiry_margin", defaults.expiry_margin)),
            backoff=BackoffPolicy.from_dict(data.get("backoff", {})),
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> CoordinatorConfig:
        """Build config from LEDGER_SUBMIT_* environment variables.

        Raises:
            ValueError: If a variable cannot be converted to its type.
            jsonschema.ValidationError: If a converted value is out of range.
        """
        env = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        backoff: dict[str, Any] = {}
        for suffix, (key, kind) in _ENV_FIELDS.items():
            raw = env.get(ENV_PREFIX + suffix)
            if raw:
                data[key] = _convert(suffix, raw, kind)
        for suffix, (key, kind) in _ENV_BACKOFF_FIELDS.items():
            raw = env.get(ENV_PREFIX + suffix)
            if raw:
                backoff[key] = _convert(suffix, raw, kind)
        if backoff:
            data["backoff"] = backoff
        return cls.from_dict(data)


def _convert(suffix: str, raw: str, kind: type) -> Any:
    try:
        return kind(raw)
    except ValueError as e:
        raise ValueError(f"{ENV_PREFIX}{suffix}: cannot parse {raw!r}") from e
