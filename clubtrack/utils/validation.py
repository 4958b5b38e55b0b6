"""
Form Validation Framework for Club Tracking.

Features:
- Field validators with type coercion (raw form strings -> numbers)
- Range validation with exclusive and inclusive bounds
- Enumerated option validation
- Entity schemas that collect a field-level error map
- Pure: validation never mutates its input and never performs I/O
"""

import re
import math
import logging
from typing import Any, Dict, List, Optional, Union
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


# ============================================
# VALIDATION ERRORS
# ============================================

class FieldValidationError(Exception):
    """One field's value was rejected; `message` is what the form shows."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(f"{field}: {message}" if field else message)
        self.message = message
        self.field = field
        self.value = value


@dataclass
class ValidationResult:
    """Errors keyed by field plus the cleaned values of the fields that passed."""
    is_valid: bool
    errors: Dict[str, str] = field(default_factory=dict)
    cleaned_data: Dict[str, Any] = field(default_factory=dict)

    def add_error(self, error: FieldValidationError):
        """Add an error and mark as invalid. First error per field wins."""
        key = error.field or '__all__'
        self.errors.setdefault(key, error.message)
        self.is_valid = False

    def merge(self, other: 'ValidationResult'):
        for key, message in other.errors.items():
            self.errors.setdefault(key, message)
        if other.errors:
            self.is_valid = False
        self.cleaned_data.update(other.cleaned_data)


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


# ============================================
# FIELD VALIDATORS
# ============================================

class FieldValidator:
    """Cleans one raw value or raises FieldValidationError."""

    def validate(self, value: Any, field_name: str) -> Any:
        """Return the cleaned value."""
        raise NotImplementedError


class NumberValidator(FieldValidator):
    """Coerces to a finite float."""

    def validate(self, value: Any, field_name: str) -> Any:
        if isinstance(value, bool):
            raise FieldValidationError(f"{field_name} must be a number", field_name, value)

        if isinstance(value, str):
            value = value.strip()

        try:
            number = float(value)
        except (TypeError, ValueError):
            raise FieldValidationError(f"{field_name} must be a number", field_name, value)

        if not math.isfinite(number):
            raise FieldValidationError(f"{field_name} must be a finite number", field_name, value)

        return number


class IntegerValidator(FieldValidator):
    """Accepts whole numbers only: '12' and 12.0 pass, '12.5' does not."""

    DIGITS = re.compile(r'^[-+]?\d+$')

    def validate(self, value: Any, field_name: str) -> Any:
        if isinstance(value, bool):
            raise FieldValidationError(f"{field_name} must be a whole number", field_name, value)

        if isinstance(value, int):
            return value

        if isinstance(value, float):
            if math.isfinite(value) and value.is_integer():
                return int(value)
            raise FieldValidationError(f"{field_name} must be a whole number", field_name, value)

        text = str(value).strip()
        if not self.DIGITS.match(text):
            raise FieldValidationError(f"{field_name} must be a whole number", field_name, value)
        return int(text)


class RangeValidator(FieldValidator):
    """Numeric bounds: gt is exclusive, min_value and max_value are inclusive."""

    def __init__(self, gt=None, min_value=None, max_value=None):
        self.checks = [
            (bound, test, wording)
            for bound, test, wording in (
                (gt, lambda v, b: v > b, "greater than"),
                (min_value, lambda v, b: v >= b, "at least"),
                (max_value, lambda v, b: v <= b, "at most"),
            )
            if bound is not None
        ]

    def validate(self, value: Any, field_name: str) -> Any:
        for bound, test, wording in self.checks:
            if not test(value, bound):
                raise FieldValidationError(
                    f"{field_name} must be {wording} {_format_bound(bound)}", field_name, value
                )
        return value


class RegexValidator(FieldValidator):
    """Whole-string match against a compiled pattern."""

    def __init__(self, pattern: str, message: Optional[str] = None):
        self.pattern = re.compile(pattern)
        self.message = message

    def validate(self, value: Any, field_name: str) -> Any:
        text = str(value).strip()
        if not self.pattern.match(text):
            message = self.message or f"{field_name} has an invalid format"
            raise FieldValidationError(message, field_name, value)
        return text


class EnumValidator(FieldValidator):
    """Exact membership in an ordered option list (e.g. the technical scale)."""

    def __init__(self, options: List[Any]):
        self.options = list(options)

    def validate(self, value: Any, field_name: str) -> Any:
        if isinstance(value, str):
            value = value.strip()
        if value not in self.options:
            raise FieldValidationError(
                f"{field_name} must be one of: {', '.join(map(str, self.options))}",
                field_name,
                value
            )
        return value


class TextValidator(FieldValidator):
    """Strips text; blank becomes None."""

    def __init__(self, max_length: Optional[int] = None):
        self.max_length = max_length

    def validate(self, value: Any, field_name: str) -> Any:
        text = str(value).strip()
        if self.max_length is not None and len(text) > self.max_length:
            raise FieldValidationError(
                f"{field_name} must be at most {self.max_length} characters",
                field_name,
                value
            )
        return text or None


def _format_bound(bound: Union[int, float]) -> str:
    # YAML keeps 12.0 as a float, so level bounds print as '12.0'
    return str(bound)


# ============================================
# SCHEMA DEFINITIONS
# ============================================

@dataclass
class FieldSchema:
    name: str
    validators: List[FieldValidator] = field(default_factory=list)
    required: bool = False
    default: Any = None


class EntitySchema:
    """Fields validated in declaration order; each field reports its first error only."""

    def __init__(self):
        self.fields: Dict[str, FieldSchema] = {}

    def add_field(self, name: str, validators: Optional[List[FieldValidator]] = None,
                  required: bool = False, default: Any = None):
        self.fields[name] = FieldSchema(name, list(validators or []), required, default)

    def _clean(self, schema: FieldSchema, value: Any) -> Any:
        if is_blank(value):
            if schema.required:
                raise FieldValidationError(f"{schema.name} is required", schema.name, value)
            value = schema.default
            if is_blank(value):
                return None
        for validator in schema.validators:
            value = validator.validate(value, schema.name)
        return value

    def validate(self, data: Dict[str, Any]) -> ValidationResult:
        """
        Validate raw data against the schema.

        Blank optional fields fall back to the field default (None unless
        declared). Blank required fields produce '<field> is required'.
        Unknown keys in data are ignored.
        """
        result = ValidationResult(is_valid=True)
        for name, schema in self.fields.items():
            try:
                result.cleaned_data[name] = self._clean(schema, data.get(name))
            except FieldValidationError as e:
                result.add_error(e)
        return result
