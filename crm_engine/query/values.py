"""Value coercion according to a field's declared data type."""

from decimal import Decimal, InvalidOperation
from typing import Any

from crm_engine.core.errors import InternalEngineError, InvalidValueError
from crm_engine.metadata.schemas import FieldDataType, FieldDefinitionRead
from crm_engine.query.dates import to_utc

_TRUE_STRINGS = {"true", "t", "yes", "1"}
_FALSE_STRINGS = {"false", "f", "no", "0"}


def _to_number(value: Any):
    if isinstance(value, bool):
        raise ValueError("booleans are not numbers")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(Decimal(text))
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}") from None
    raise ValueError(f"not a number: {value!r}")


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ValueError(f"not a boolean: {value!r}")


def _coerce(data_type: FieldDataType, value: Any) -> Any:
    if value is None:
        raise ValueError("null is not a comparable value")
    if data_type.is_numeric:
        return _to_number(value)
    if data_type.is_temporal:
        return to_utc(value)
    if data_type == FieldDataType.BOOLEAN:
        return _to_bool(value)
    if isinstance(value, (dict, list, tuple)):
        raise ValueError(f"not a scalar: {value!r}")
    return value if isinstance(value, str) else str(value)


def coerce_filter_value(field: FieldDefinitionRead, value: Any, operator_name: str) -> Any:
    """Coerce a caller-supplied filter value to the field's type."""
    try:
        return _coerce(field.data_type, value)
    except ValueError:
        raise InvalidValueError(
            f"Value {value!r} is not valid for {field.data_type.value} field '{field.api_name}'",
            field=field.api_name,
            operator=operator_name,
        ) from None


def coerce_record_value(field: FieldDefinitionRead, value: Any) -> Any:
    """Coerce a stored value to the field's type; None stays None.

    Stored data that contradicts the declared type is an internal error.
    """
    if value is None:
        return None
    try:
        return _coerce(field.data_type, value)
    except ValueError:
        raise InternalEngineError(
            f"Stored value {value!r} does not match {field.data_type.value} field '{field.api_name}'",
            field=field.api_name,
        ) from None


def as_text(value: Any) -> str:
    return value if isinstance(value, str) else str(value)
