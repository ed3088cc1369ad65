"""
Domain: Field-level validation.

Error taxonomy and the generic rule runner used to validate incoming sale
payloads.

Rules:
- Validation is declared as a mapping from field name to an ordered list of
  validator callables.
- The runner applies every rule and collects every failure before reporting;
  it never stops at the first problem.
- A value outside a closed enumeration is a SchemaError, never silently
  defaulted.

This module contains no I/O and no framework code.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar


E = TypeVar("E")

# A validator returns an error message, or None when the value is acceptable.
Validator = Callable[[Any], Optional[str]]

# Largest accepted magnitude for any amount or quantity (exclusive).
MAX_MAGNITUDE = Decimal("1e12")
_MAX_ADJUSTED = MAX_MAGNITUDE.adjusted() - 1


@dataclass(frozen=True, slots=True)
class FieldViolation:
    """A single failed rule for a single field path (e.g. `payments[1].amount`)."""

    field: str
    message: str
    code: str = "invalid"

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message, "code": self.code}


class ValidationError(ValueError):
    """
    One or more field-level violations.

    All violations found during a validation pass are carried together so the
    caller can report every problem at once.
    """

    default_message = "Sale payload failed validation"

    def __init__(self, violations: Sequence[FieldViolation], message: Optional[str] = None) -> None:
        self.violations: Tuple[FieldViolation, ...] = tuple(violations)
        self.message = message or self.default_message
        super().__init__(self._render())

    def _render(self) -> str:
        details = "; ".join(f"{v.field}: {v.message}" for v in self.violations)
        return f"{self.message} ({details})" if details else self.message

    def fields(self) -> List[str]:
        return [v.field for v in self.violations]

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "violations": [v.to_dict() for v in self.violations],
        }


class SchemaError(ValidationError):
    """A value is not a member of its declared enumeration."""

    default_message = "Sale payload contains values outside their allowed sets"


class ValidationCollector:
    """Accumulates violations across nested fields during a single pass."""

    def __init__(self) -> None:
        self._violations: List[FieldViolation] = []
        self._schema_failed = False

    def add(self, field: str, message: str, code: str = "invalid") -> None:
        self._violations.append(FieldViolation(field=field, message=message, code=code))

    def add_schema(self, field: str, message: str) -> None:
        self._schema_failed = True
        self.add(field, message, code="not_in_enum")

    def extend(self, violations: Iterable[FieldViolation]) -> None:
        self._violations.extend(violations)

    @property
    def violations(self) -> Tuple[FieldViolation, ...]:
        return tuple(self._violations)

    def __bool__(self) -> bool:
        return bool(self._violations)

    def raise_if_any(self) -> None:
        """Raise SchemaError if any enum check failed, else ValidationError if anything failed."""

        if not self._violations:
            return
        if self._schema_failed:
            raise SchemaError(self._violations)
        raise ValidationError(self._violations)


def run_rules(
    values: Mapping[str, Any],
    rules: Mapping[str, Sequence[Validator]],
    *,
    prefix: str = "",
) -> List[FieldViolation]:
    """
    Apply each field's validators in order and collect every failure.

    A field stops at its first failing rule (later rules usually assume the
    earlier ones held, e.g. "is a number" before "is positive"), but every
    field is checked.
    """

    violations: List[FieldViolation] = []
    for field, validators in rules.items():
        value = values.get(field)
        for validator in validators:
            message = validator(value)
            if message is not None:
                violations.append(FieldViolation(field=f"{prefix}{field}", message=message))
                break
    return violations


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------

def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Coerce a loosely-typed numeric value to Decimal.

    Floats go through `str` so that 3.5 becomes Decimal("3.5") rather than its
    binary expansion. Returns None when the value is not numeric.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            return None
    else:
        return None
    if not result.is_finite():
        return None
    return result


def to_int(value: Any) -> Optional[int]:
    """Coerce to int only when the value is integral (2, "2", 2.0, Decimal("2"))."""

    number = to_decimal(value)
    if number is None:
        return None
    if number.is_zero():
        return 0
    if number.adjusted() > _MAX_ADJUSTED or number != number.to_integral_value():
        return None
    return int(number)


def parse_enum(enum_cls: Type[E], value: Any) -> Optional[E]:
    """Look up an enum member by its value (case-insensitive for strings)."""

    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return None
    try:
        return enum_cls(value.strip().upper())  # type: ignore[call-arg]
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Reusable validators
# ---------------------------------------------------------------------------

def required(value: Any) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return "is required"
    return None


def optional_string(value: Any) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        return "must be a string"
    return None


def is_string(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return "must be a string"
    return None


def is_decimal(value: Any) -> Optional[str]:
    if to_decimal(value) is None:
        return "must be a number"
    return None


def is_integer(value: Any) -> Optional[str]:
    if to_int(value) is None:
        return "must be a whole number"
    return None


def within_limit(value: Any) -> Optional[str]:
    """Reject numbers whose magnitude reaches MAX_MAGNITUDE; non-numbers pass through."""

    number = to_decimal(value)
    if number is not None and not number.is_zero() and number.adjusted() > _MAX_ADJUSTED:
        return "is too large"
    return None


def min_value(minimum: Decimal, *, inclusive: bool = True) -> Validator:
    """Build a validator for `value >= minimum` (or `>` when not inclusive)."""

    def check(value: Any) -> Optional[str]:
        number = to_decimal(value)
        if number is None:
            return "must be a number"
        if inclusive and number < minimum:
            return f"must be at least {minimum}"
        if not inclusive and number <= minimum:
            return f"must be greater than {minimum}"
        return None

    return check


def when_present(*validators: Validator) -> List[Validator]:
    """Wrap validators so they only run when the value is not None."""

    def wrap(validator: Validator) -> Validator:
        def check(value: Any) -> Optional[str]:
            if value is None:
                return None
            return validator(value)

        return check

    return [wrap(v) for v in validators]


__all__ = [
    "MAX_MAGNITUDE",
    "FieldViolation",
    "SchemaError",
    "ValidationCollector",
    "ValidationError",
    "Validator",
    "is_decimal",
    "is_integer",
    "is_string",
    "min_value",
    "optional_string",
    "parse_enum",
    "required",
    "run_rules",
    "to_decimal",
    "to_int",
    "when_present",
    "within_limit",
]
