"""
Valya - Data Models.

============================================================
PURPOSE
============================================================
Defines the data structures shared by the scheduler, the run
executor and the orchestrator facade:
- Trigger and outcome enums
- ValidatorCheck (a check bound to immutable params)
- GenerationToken and ValidationRun
- ValidationState (the externally observable result)
- ValidationConfig (the per-trigger configuration record)

============================================================
STATE INVARIANT
============================================================

    is_valid == False  <=>  validation_message is not None

The universal initial state is
    ValidationState(is_validating=False, is_valid=True,
                    validation_message=None)

============================================================
"""

import dataclasses
from collections.abc import Mapping as MappingABC
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from .exceptions import ConfigurationError, MalformedValidatorError


# ============================================================
# ENUMS
# ============================================================

class TriggerType(Enum):
    """External notification evaluated by the scheduler."""
    MOUNTED = "mounted"  # First observation
    VALUE_CHANGED = "value_changed"  # Any later configuration change


class RunOutcome(Enum):
    """How a run settled."""
    VALID = "valid"
    INVALID = "invalid"


# ============================================================
# VALIDATOR CHECK
# ============================================================

CheckFunction = Callable[[Any, Mapping[str, Any]], Any]


@dataclass(frozen=True)
class ValidatorCheck:
    """
    A single async predicate bound to static parameters.

    check(value, params) passes by returning (or resolving) and fails
    by raising ValidationFailed. params is frozen and passed verbatim
    on every invocation.
    """
    check: CheckFunction
    params: Mapping[str, Any] = field(default_factory=dict)
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if not callable(self.check):
            raise MalformedValidatorError(
                f"check must be callable, got {type(self.check).__name__}",
                entry=self.check,
            )
        if self.params is None:
            params: Mapping[str, Any] = {}
        elif isinstance(self.params, MappingABC):
            params = self.params
        else:
            raise MalformedValidatorError(
                f"params must be a mapping, got {type(self.params).__name__}",
                entry=self.params,
            )
        object.__setattr__(self, "params", MappingProxyType(dict(params)))
        if self.name is None:
            object.__setattr__(
                self, "name", getattr(self.check, "__name__", repr(self.check))
            )


def coerce_validator(entry: Any, index: Optional[int] = None) -> ValidatorCheck:
    """
    Normalize one validators-list entry into a ValidatorCheck.

    Accepted shapes:
        ValidatorCheck(...)
        {"validator": fn, "params": {...}}   (also "check" instead of "validator")
        (fn, params)
        fn
    """
    try:
        if isinstance(entry, ValidatorCheck):
            return entry

        if isinstance(entry, MappingABC):
            fn = entry.get("validator", entry.get("check"))
            if fn is None:
                raise MalformedValidatorError(
                    "mapping entry needs a 'validator' or 'check' key",
                    index=index,
                    entry=entry,
                )
            return ValidatorCheck(
                check=fn,
                params=entry.get("params") or {},
                name=entry.get("name"),
            )

        if isinstance(entry, tuple) and len(entry) == 2:
            fn, params = entry
            return ValidatorCheck(check=fn, params=params or {})

        if callable(entry):
            return ValidatorCheck(check=entry)

    except MalformedValidatorError as e:
        if e.index is None and index is not None:
            raise MalformedValidatorError(e.reason, index=index, entry=entry) from e
        raise

    raise MalformedValidatorError(
        f"unsupported entry type {type(entry).__name__}",
        index=index,
        entry=entry,
    )


def coerce_validators(entries: Any) -> Tuple[ValidatorCheck, ...]:
    """Normalize a validators list, failing fast on the first bad entry."""
    if entries is None:
        raise ConfigurationError(
            "validators is required",
            config_key="validators",
            expected_value="sequence of checks",
        )
    if isinstance(entries, (str, bytes, MappingABC)) or not isinstance(entries, Iterable):
        raise ConfigurationError(
            "validators must be an ordered sequence of checks",
            config_key="validators",
            expected_value="sequence of checks",
            actual_value=type(entries).__name__,
        )
    return tuple(coerce_validator(entry, index=i) for i, entry in enumerate(entries))


# ============================================================
# GENERATION / RUN
# ============================================================

@dataclass(frozen=True, order=True)
class GenerationToken:
    """Identifies one validation attempt. Newer attempts compare greater."""
    generation: int


@dataclass
class ValidationRun:
    """One attempt to evaluate an ordered list of checks against a value snapshot."""

    token: GenerationToken
    """Generation assigned when the run was accepted."""

    value_snapshot: Any
    """Value captured at creation time."""

    checks: Tuple[ValidatorCheck, ...]
    """Checks to evaluate, in declared order."""

    trigger: TriggerType = TriggerType.VALUE_CHANGED
    """Trigger that started the run."""

    created_at: datetime = field(default_factory=datetime.utcnow)
    """When the run was accepted."""

    checks_invoked: int = 0
    """How many checks were actually called."""

    outcome: Optional[RunOutcome] = None
    """Set once the run settles."""

    message: Any = None
    """Failure message of the first failing check."""

    settled_at: Optional[datetime] = None
    """When the run settled."""

    stale: bool = False
    """Whether the result was discarded because a newer run exists."""

    @property
    def generation(self) -> int:
        return self.token.generation

    @property
    def is_settled(self) -> bool:
        return self.outcome is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging and history."""
        duration_ms = None
        if self.settled_at is not None:
            duration_ms = (self.settled_at - self.created_at).total_seconds() * 1000
        return {
            "generation": self.generation,
            "trigger": self.trigger.value,
            "checks": [c.name for c in self.checks],
            "checks_invoked": self.checks_invoked,
            "outcome": self.outcome.value if self.outcome else None,
            "message": self.message,
            "stale": self.stale,
            "created_at": self.created_at.isoformat(),
            "settled_at": self.settled_at.isoformat() if self.settled_at else None,
            "duration_ms": duration_ms,
        }


# ============================================================
# VALIDATION STATE
# ============================================================

@dataclass(frozen=True)
class ValidationState:
    """
    Externally observable validation result.

    Replaced as a whole, never mutated in place.
    """
    is_validating: bool = False
    is_valid: bool = True
    validation_message: Any = None

    def __post_init__(self) -> None:
        if self.is_valid and self.validation_message is not None:
            raise ValueError("a valid state cannot carry a validation_message")
        if not self.is_valid and self.validation_message is None:
            raise ValueError("an invalid state requires a validation_message")

    @classmethod
    def initial(cls) -> "ValidationState":
        return cls()

    @classmethod
    def settled(cls, run: ValidationRun) -> "ValidationState":
        """Build the state a settled run reports."""
        if run.outcome == RunOutcome.INVALID:
            return cls(is_validating=False, is_valid=False, validation_message=run.message)
        return cls(is_validating=False, is_valid=True, validation_message=None)

    def validating(self) -> "ValidationState":
        return dataclasses.replace(self, is_validating=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_validating": self.is_validating,
            "is_valid": self.is_valid,
            "validation_message": self.validation_message,
        }


# ============================================================
# CONFIGURATION
# ============================================================

@dataclass
class ValidationConfig:
    """
    Configuration record supplied on every trigger.

    Unknown caller fields live in extra and are passed through
    untouched.
    """
    validators: Tuple[ValidatorCheck, ...]
    value: Any = None
    should_validate: bool = True
    initial_validation: bool = False
    on_start: Optional[Callable[[], Any]] = None
    on_end: Optional[Callable[[ValidationState], Any]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.validators = coerce_validators(self.validators)
        for key in ("on_start", "on_end"):
            callback = getattr(self, key)
            if callback is not None and not callable(callback):
                raise ConfigurationError(
                    f"{key} must be callable",
                    config_key=key,
                    expected_value="callable or None",
                    actual_value=type(callback).__name__,
                )
        self.extra = dict(self.extra or {})

    def evolve(self, **changes: Any) -> "ValidationConfig":
        """
        Return a copy with changes applied.

        Keys that are not configuration fields are merged into extra.
        """
        known = {f.name for f in dataclasses.fields(self)} - {"extra"}
        updates = {k: v for k, v in changes.items() if k in known}
        extra = dict(self.extra)
        extra.update(changes.get("extra") or {})
        extra.update({k: v for k, v in changes.items() if k not in known and k != "extra"})
        return dataclasses.replace(self, extra=extra, **updates)
